"""
Custom logging formats that contain more detailed recon8 logs
"""

# First Party
from alog import AlogJsonFormatter


class Recon8JsonFormatter(AlogJsonFormatter):
    """Custom Log Format that extends AlogJsonFormatter to add recon8 specific
    fields to the json. This includes the identifiers of the resource being
    synced, the controller doing the work and thread information.

    Resource fields are read from `extra={"resource": ...}` where the value is
    either a WatchedObject or a raw object dict.
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "process",
        "thread",
        "threadName",
        "controller",
        "kind",
        "apiVersion",
        "resourceVersion",
        "resourceName",
        "resourceNamespace",
    ]

    def format(self, record):
        if resource := getattr(record, "resource", None):
            record.kind = resource.get("kind")
            record.apiVersion = resource.get("apiVersion")

            metadata = resource.get("metadata", {}) or {}
            record.resourceVersion = metadata.get("resourceVersion")
            record.resourceName = metadata.get("name")
            record.resourceNamespace = metadata.get("namespace")

        return super().format(record)
