#!/usr/bin/env python3
"""
Setup script for the kube9 operator collection pipeline.
This is a lightweight installation that only installs the collection component.
"""

from setuptools import setup, find_packages

# Most configuration is in pyproject.toml
# This file exists for compatibility with older pip versions

setup(
    packages=find_packages(include=["kube9_operator", "kube9_operator.*"]),
)
