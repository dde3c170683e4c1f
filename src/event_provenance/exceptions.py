# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Error taxonomy for provenance record creation and lookup.

Chain integrity problems are not exceptions: verify_chain() returns them
as ChainIssue data.
"""


class ProvenanceError(Exception):
    """Base class for provenance errors."""
    pass


class SignerUnavailable(ProvenanceError):
    """Signing device could not produce a signature."""
    pass


class StoreError(ProvenanceError):
    """The store rejected or failed a read or write."""
    pass


class StoreTimeout(StoreError):
    """A store read or write did not complete within its time bound."""
    pass


class DuplicateEvent(ProvenanceError):
    """An event record with this event_id already exists."""

    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} already exists")
        self.event_id = event_id


class NotFound(ProvenanceError):
    """No event record with this event_id."""

    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class ChainAppendFailure(ProvenanceError):
    """
    Chain link could not be appended.

    The event record named by event_id was already written and is now
    orphaned: present in the event store, absent from the chain.
    """

    def __init__(self, event_id: str, reason: str):
        super().__init__(f"Chain append failed for event {event_id}: {reason}")
        self.event_id = event_id
        self.reason = reason


class MalformedRecord(ProvenanceError):
    """A stored event record no longer decodes (e.g. edited by hand)."""

    def __init__(self, event_id: str, reason: str):
        super().__init__(f"Event {event_id} is malformed: {reason}")
        self.event_id = event_id
        self.reason = reason
