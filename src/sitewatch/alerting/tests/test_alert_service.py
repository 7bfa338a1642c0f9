"""
Tests for AlertService.

Alerts follow configuration events and share one append-only log.
"""
import pytest

from sitewatch.alerting import AlertService, ThresholdMode
from sitewatch.config import AlertRemoved, ConfigurationError
from sitewatch.metrics import Sample


@pytest.fixture
def service(config, store, mock_display):
    service = AlertService(config, store, mock_display)
    service.run()
    return service


class TestAlertLifecycle:

    def test_set_watches_metric_named_like_alert(self, service, config, store, url):
        """Without `metric`, the alert watches the metric named like the alert."""
        config.set_alert(url, "availability_2m_AVG", {"min": 0.8})

        store.push(url, "availability_2m_AVG", 1000, 0.5)

        assert service.is_triggered(url, "availability_2m_AVG")
        assert service.alerts == [
            f"Website {url} is down. availability_2m_AVG=0.5, time=1000",
        ]

    def test_explicit_metric(self, service, config, store, url):
        config.set_alert(url, "site_down", {"min": 1, "metric": "availability"})

        store.push(url, "availability", 1, 0)

        assert service.is_triggered(url, "site_down")
        assert "site_down=0" in service.alerts[0]

    def test_log_forwarded_to_display(self, service, config, store, url, mock_display):
        config.set_alert(url, "availability_2m_AVG", {"min": 0.8})

        store.push(url, "availability_2m_AVG", 1, 0.5)
        store.push(url, "availability_2m_AVG", 2, 0.9)

        assert mock_display.alert.call_count == 2
        assert mock_display.alert.call_args[0][0] == service.alerts
        assert service.render() == "\n".join(service.alerts)

    def test_replacing_disposes_previous(self, service, config, store, url):
        """Re-registering an alert should unsubscribe the previous monitor."""
        config.set_alert(url, "availability_2m_AVG", {"min": 0.8})
        config.set_alert(url, "availability_2m_AVG", {"max": 0.8})

        metric = store.get(url, "availability_2m_AVG")
        assert metric.subscriber_count() == 1

        store.push(url, "availability_2m_AVG", 1, 0.5)
        assert not service.is_triggered(url, "availability_2m_AVG")

    def test_del_stops_monitor_keeps_log(self, service, config, store, url):
        """Should stop watching but keep the log lines already written."""
        config.set_alert(url, "availability_2m_AVG", {"min": 0.8})
        store.push(url, "availability_2m_AVG", 1, 0.5)

        config.del_alert(url, "availability_2m_AVG")
        store.push(url, "availability_2m_AVG", 2, 0.9)

        assert len(service.alerts) == 1
        assert (url, "availability_2m_AVG") not in service.monitors
        assert "availability_2m_AVG" not in config.websites[url].alerts

    def test_del_unknown_is_noop(self, service, url):
        service.on_alert_del(AlertRemoved(url=url, alert_name="missing"))

    def test_alerts_property_is_a_copy(self, service):
        service.alerts.append("tampered")

        assert service.alerts == []

    def test_per_threshold_mode(self, config, store, url):
        service = AlertService(config, store, mode=ThresholdMode.PER_THRESHOLD)
        service.run()
        config.set_alert(url, "availability_2m_AVG", {"min": 0.2, "max": 0.8})

        store.push(url, "availability_2m_AVG", 1, 0.1)

        assert service.is_triggered(url, "availability_2m_AVG")

    def test_dispose_all(self, service, config, store, url):
        config.set_alert(url, "availability_2m_AVG", {"min": 0.8})

        service.dispose_all()

        assert store.get(url, "availability_2m_AVG").subscriber_count() == 0
        assert service.monitors == {}


class TestAlertRejection:

    def test_unknown_metric_rejected(self, service, config, url):
        """Alerting on a metric that does not exist yet is rejected."""
        with pytest.raises(ConfigurationError):
            config.set_alert(url, "nope", {"min": 1})

        assert "nope" not in config.websites[url].alerts
        assert not service.is_triggered(url, "nope")

    def test_missing_thresholds_rejected(self, service, config, url):
        with pytest.raises(ConfigurationError):
            config.set_alert(url, "availability", {})

    def test_unknown_website_rejected(self, service, config):
        with pytest.raises(ConfigurationError):
            config.set_alert("https://unknown.org", "availability", {"min": 1})
