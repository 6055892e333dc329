"""
Unit tests for collection statistics and Prometheus metrics.
"""

import pytest
from unittest.mock import patch

from kube9_operator.collection.metrics import CollectionMetrics
from kube9_operator.collection.stats import CollectionStatsTracker


class TestCollectionStatsTracker:
    """Test the in-memory statistics tracker."""

    def test_empty(self):
        """Test a fresh tracker reports zeros."""
        stats = CollectionStatsTracker().get_stats()

        assert stats.total_success_count == 0
        assert stats.total_failure_count == 0
        assert stats.collections_stored_count == 0
        assert stats.last_success_time is None
        assert stats.by_type == {}

    def test_counts_per_type(self):
        """Test successes and failures aggregate per type and in total."""
        tracker = CollectionStatsTracker()
        tracker.record_success("cluster-metadata")
        tracker.record_success("cluster-metadata")
        tracker.record_failure("resource-inventory")
        tracker.update_stored_count(7)

        stats = tracker.get_stats()

        assert stats.total_success_count == 2
        assert stats.total_failure_count == 1
        assert stats.collections_stored_count == 7
        assert stats.by_type["cluster-metadata"].success_count == 2
        assert stats.by_type["resource-inventory"].failure_count == 1
        assert stats.by_type["resource-inventory"].last_success_time is None
        assert stats.last_success_time == stats.by_type["cluster-metadata"].last_success_time

    def test_snapshot_is_independent(self):
        """Test later records do not change an earlier snapshot."""
        tracker = CollectionStatsTracker()
        tracker.record_success("cluster-metadata")
        snapshot = tracker.get_stats()

        tracker.record_success("cluster-metadata")

        assert snapshot.by_type["cluster-metadata"].success_count == 1

    def test_reset(self):
        """Test reset clears everything."""
        tracker = CollectionStatsTracker()
        tracker.record_success("cluster-metadata")
        tracker.update_stored_count(3)

        tracker.reset()
        stats = tracker.get_stats()

        assert stats.total_success_count == 0
        assert stats.collections_stored_count == 0


class TestCollectionMetrics:
    """Test Prometheus metrics."""

    def sample(self, metrics: CollectionMetrics, name: str, **labels):
        return metrics.registry.get_sample_value(name, labels or None)

    def test_record_success(self):
        """Test a successful collection updates counter, histogram and gauge."""
        metrics = CollectionMetrics()

        metrics.record_collection("cluster-metadata", "success", 1.5)

        assert (
            self.sample(
                metrics,
                "kube9_operator_collection_total",
                type="cluster-metadata",
                status="success",
            )
            == 1.0
        )
        assert (
            self.sample(
                metrics,
                "kube9_operator_collection_duration_seconds_count",
                type="cluster-metadata",
            )
            == 1.0
        )
        assert (
            self.sample(
                metrics,
                "kube9_operator_collection_duration_seconds_bucket",
                type="cluster-metadata",
                le="2.5",
            )
            == 1.0
        )
        assert (
            self.sample(metrics, "kube9_operator_collection_last_success", type="cluster-metadata")
            > 0
        )

    def test_record_failure_leaves_last_success(self):
        """Test a failure does not touch the last success gauge."""
        metrics = CollectionMetrics()

        metrics.record_collection("resource-inventory", "failed", 0.2)

        assert (
            self.sample(
                metrics,
                "kube9_operator_collection_total",
                type="resource-inventory",
                status="failed",
            )
            == 1.0
        )
        assert (
            self.sample(
                metrics, "kube9_operator_collection_last_success", type="resource-inventory"
            )
            is None
        )

    def test_record_never_raises(self, caplog):
        """Test metric errors are logged, not raised."""
        metrics = CollectionMetrics()

        with patch.object(metrics.collection_total, "labels", side_effect=ValueError("bad label")):
            metrics.record_collection("cluster-metadata", "success", 1.0)

        assert "Failed to record collection metrics" in caplog.text

    def test_stored_count_never_raises(self, caplog):
        """Test a failing stored count gauge is logged, not raised."""
        metrics = CollectionMetrics()

        with patch.object(metrics.collections_stored, "set", side_effect=ValueError("broken")):
            metrics.set_stored_count(3)

        assert "Failed to record stored collection count" in caplog.text

    def test_transmission_and_stored(self):
        """Test transmission outcomes and the stored gauge."""
        metrics = CollectionMetrics()

        metrics.record_transmission("cluster-metadata", "delivered")
        metrics.set_stored_count(4)

        assert (
            self.sample(
                metrics,
                "kube9_operator_transmission_total",
                type="cluster-metadata",
                status="delivered",
            )
            == 1.0
        )
        assert self.sample(metrics, "kube9_operator_collections_stored") == 4.0

    def test_instances_do_not_share_registry(self):
        """Test separate instances keep separate counters."""
        first = CollectionMetrics()
        second = CollectionMetrics()

        first.record_collection("cluster-metadata", "success", 1.0)

        assert (
            self.sample(
                second,
                "kube9_operator_collection_total",
                type="cluster-metadata",
                status="success",
            )
            is None
        )

    def test_render(self):
        """Test the exposition text contains every metric family."""
        metrics = CollectionMetrics()
        metrics.record_collection("cluster-metadata", "success", 1.0)

        text = metrics.render().decode()

        for name in (
            "kube9_operator_collection_total",
            "kube9_operator_collection_duration_seconds",
            "kube9_operator_collection_last_success",
            "kube9_operator_collections_stored",
            "kube9_operator_transmission_total",
        ):
            assert name in text


@pytest.mark.parametrize("status", ["success", "failed"])
def test_duration_buckets(status):
    """Test the histogram uses the collection duration buckets."""
    metrics = CollectionMetrics()

    metrics.record_collection("cluster-metadata", status, 200)

    assert (
        metrics.registry.get_sample_value(
            "kube9_operator_collection_duration_seconds_bucket",
            {"type": "cluster-metadata", "le": "120.0"},
        )
        == 0.0
    )
    assert (
        metrics.registry.get_sample_value(
            "kube9_operator_collection_duration_seconds_bucket",
            {"type": "cluster-metadata", "le": "+Inf"},
        )
        == 1.0
    )
