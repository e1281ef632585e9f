"""
Notification System Module - GateCheck Event Check-in System

This module carries change notifications and scan alerts between the parts
of the check-in system. The ticket store publishes a change event after
every write; the dashboard and the server-sent-events stream subscribe to
those events. Verdict notifications are rendered from Jinja2 templates and
kept in a bounded history for the operator console.

Features:
- Cancelable push subscriptions: subscribe(callback) -> cancel handle
- Per-topic and wildcard listeners
- Templated verdict notifications with severity levels
- Bounded notification history
"""

from collections import deque
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional
import itertools
import logging
import threading

from jinja2 import Template

ALL_TOPICS = '*'


@dataclass
class NotificationData:
    """Data structure for notification information."""
    id: str
    type: str
    title: str
    message: str
    severity: str
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class NotificationSystem:
    """
    In-process publish/subscribe hub for change events and scan alerts.
    Listeners are called synchronously on the publishing thread.
    """

    NOTIFICATION_TYPES = {
        'TICKETS_CHANGED': 'tickets_changed',
        'CHECKIN_VERDICT': 'checkin_verdict',
        'SYSTEM_ALERT': 'system_alert'
    }

    SEVERITY_LEVELS = {
        'INFO': 'info',
        'WARNING': 'warning',
        'ERROR': 'error',
        'SUCCESS': 'success'
    }

    # Verdict status -> severity shown to the operator
    VERDICT_SEVERITY = {
        'valid': 'success',
        'duplicate': 'warning',
        'invalid': 'error'
    }

    def __init__(self, history_size: int = 100):
        """
        Initialize the notification system.

        Args:
            history_size (int): Number of recent notifications kept in memory
        """
        self.logger = logging.getLogger(__name__)
        self._listeners: Dict[str, Dict[int, Callable[[NotificationData], None]]] = {}
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self.history: Deque[Dict[str, Any]] = deque(maxlen=history_size)

        self.templates = {
            'checkin_verdict': Template(
                "{% if status == 'valid' %}Checked in: {{ attendee_name }} ({{ event_name }})"
                "{% elif status == 'duplicate' %}Ticket already used: {{ attendee_name }}"
                " (first scanned {{ previous_checked_in_at }})"
                "{% else %}Invalid ticket{% if code %} {{ code }}{% endif %}: {{ reason }}{% endif %}"
            ),
            'tickets_changed': Template(
                "{{ change }}{% if ticket_code %} {{ ticket_code }}{% endif %}"
                "{% if count %} ({{ count }} tickets){% endif %}"
            )
        }

    def subscribe(self, callback: Callable[[NotificationData], None],
                  topic: str = ALL_TOPICS) -> Callable[[], None]:
        """
        Register a listener and return its cancellation handle.

        Args:
            callback: Called with each NotificationData published on the topic
            topic (str): Notification type to listen to, or '*' for all

        Returns:
            Callable[[], None]: Cancel handle; safe to call more than once
        """
        with self._lock:
            token = next(self._ids)
            self._listeners.setdefault(topic, {})[token] = callback

        def cancel() -> None:
            with self._lock:
                listeners = self._listeners.get(topic)
                if listeners is not None:
                    listeners.pop(token, None)

        return cancel

    def listener_count(self, topic: Optional[str] = None) -> int:
        with self._lock:
            if topic is not None:
                return len(self._listeners.get(topic, {}))
            return sum(len(listeners) for listeners in self._listeners.values())

    def publish(self, notification_type: str, data: Dict[str, Any],
                title: str = None, severity: str = 'info') -> NotificationData:
        """
        Publish a notification to every listener of its type and to wildcard listeners.

        Args:
            notification_type (str): One of NOTIFICATION_TYPES values
            data (Dict[str, Any]): Event payload
            title (str): Optional title
            severity (str): Severity level

        Returns:
            NotificationData: The published notification
        """
        notification = NotificationData(
            id=f"{notification_type}_{next(self._ids)}",
            type=notification_type,
            title=title or notification_type.replace('_', ' ').title(),
            message=self._render(notification_type, data),
            severity=severity,
            data=data
        )

        with self._lock:
            self.history.append(asdict(notification))
            callbacks = list(self._listeners.get(notification_type, {}).values())
            callbacks += list(self._listeners.get(ALL_TOPICS, {}).values())

        for callback in callbacks:
            try:
                callback(notification)
            except Exception as e:
                self.logger.error(f"Notification listener failed for {notification.type}: {str(e)}")

        return notification

    def publish_tickets_changed(self, change: str, **details) -> NotificationData:
        """Announce a write to the ticket collection."""
        payload = {'change': change}
        payload.update(details)
        return self.publish(self.NOTIFICATION_TYPES['TICKETS_CHANGED'], payload)

    def send_verdict_notification(self, verdict_data: Dict[str, Any]) -> NotificationData:
        """
        Publish the outcome of a scan.

        Args:
            verdict_data (Dict[str, Any]): Verdict dictionary plus the scanned code

        Returns:
            NotificationData: The published notification
        """
        status = verdict_data.get('status', 'invalid')
        severity = self.VERDICT_SEVERITY.get(status, self.SEVERITY_LEVELS['INFO'])
        notification = self.publish(
            self.NOTIFICATION_TYPES['CHECKIN_VERDICT'],
            verdict_data,
            title=f"Scan {status.title()}",
            severity=severity
        )
        if severity == self.SEVERITY_LEVELS['SUCCESS']:
            self.logger.info(notification.message)
        else:
            self.logger.warning(notification.message)
        return notification

    def send_system_alert(self, title: str, message: str,
                          severity: str = 'error') -> NotificationData:
        """Publish an operator-facing alert such as a camera or store failure."""
        return self.publish(
            self.NOTIFICATION_TYPES['SYSTEM_ALERT'],
            {'message': message},
            title=title,
            severity=severity
        )

    def get_recent_notifications(self, limit: int = 20) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self.history)[-limit:][::-1]

    def _render(self, notification_type: str, data: Dict[str, Any]) -> str:
        template = self.templates.get(notification_type)
        if template is None:
            return str(data.get('message', ''))
        try:
            return template.render(**data)
        except Exception as e:
            self.logger.error(f"Error formatting {notification_type} message: {str(e)}")
            return notification_type
