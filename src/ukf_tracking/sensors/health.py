"""
Delivery health tracking for simulated sensors.

Each simulated sensor owns a SensorHealth that records whether a packet was
delivered or dropped at a given timestamp. The tracker reports availability
figures for the demo; it does not feed back into the filter.

Reliability Model:
    reliability = max(0.0, 1.0 - decay * consecutive_drops)   after a drop
    reliability = min(1.0, reliability + recovery_rate)        after a delivery
"""

from typing import Optional


class SensorHealth:
    """
    Tracks delivered and dropped packets of one sensor.

    Attributes:
        is_operational: False after failure_threshold consecutive drops
        reliability: Float [0.0, 1.0] indicating recent delivery quality
        delivered_count: Total packets delivered
        dropped_count: Total packets dropped
        consecutive_drops: Current consecutive drop streak
        last_delivery_timestamp: Timestamp of the last delivered packet
    """

    def __init__(self, failure_threshold: int = 5, reliability_decay: float = 0.15,
                 recovery_rate: float = 0.05):
        """
        Initialize sensor health monitor.

        Args:
            failure_threshold: Consecutive drops before marking the sensor inoperational
            reliability_decay: Reliability lost per consecutive drop
            recovery_rate: Reliability regained per delivery
        """
        if failure_threshold < 1:
            raise ValueError(f"Failure threshold must be at least 1, got {failure_threshold}")

        self._failure_threshold = failure_threshold
        self._reliability_decay = reliability_decay
        self._recovery_rate = recovery_rate
        self.reset()

    def record_drop(self) -> None:
        """Record a dropped packet."""
        self.dropped_count += 1
        self.consecutive_drops += 1

        penalty = min(0.9, self._reliability_decay * self.consecutive_drops)
        self.reliability = max(0.0, 1.0 - penalty)

        if self.consecutive_drops >= self._failure_threshold:
            self.is_operational = False

    def record_delivery(self, timestamp: int) -> None:
        """Record a delivered packet at the given timestamp."""
        self.delivered_count += 1
        self.consecutive_drops = 0
        self.last_delivery_timestamp = timestamp

        self.reliability = min(1.0, self.reliability + self._recovery_rate)
        if not self.is_operational and self.reliability > 0.5:
            self.is_operational = True

    def get_availability(self) -> float:
        """
        Fraction of packets delivered.

        Returns:
            Availability [0.0, 1.0], 1.0 before any packet was attempted
        """
        total = self.delivered_count + self.dropped_count
        if total == 0:
            return 1.0
        return self.delivered_count / total

    def reset(self) -> None:
        """Reset health statistics to initial state."""
        self.is_operational = True
        self.reliability = 1.0
        self.delivered_count = 0
        self.dropped_count = 0
        self.consecutive_drops = 0
        self.last_delivery_timestamp: Optional[int] = None

    def get_health_summary(self) -> dict:
        return {
            'operational': self.is_operational,
            'reliability': self.reliability,
            'delivered': self.delivered_count,
            'dropped': self.dropped_count,
            'availability': self.get_availability(),
            'consecutive_drops': self.consecutive_drops,
            'last_delivery_timestamp': self.last_delivery_timestamp
        }
