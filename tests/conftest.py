import base64
import struct
import threading

import pytest

from tandemgraph.encoding import to_short_key

MODEL_PREFIX = "urn:adsk.dtm:"


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


class KeyFactory:
    """Builds encoded keys from small integers so tests stay readable."""

    def short(self, n):
        return _b64(n.to_bytes(20, "big"))

    def flagged(self, n, flags=0):
        return _b64(struct.pack(">i", flags) + n.to_bytes(20, "big"))

    def model(self, n):
        return MODEL_PREFIX + _b64(n.to_bytes(16, "big"))

    def facility(self, n):
        return "urn:adsk.dtt:" + _b64(n.to_bytes(16, "big"))

    def local_array(self, *ns):
        return _b64(b"".join(n.to_bytes(20, "big") for n in ns))

    def xref_array(self, *pairs, flags=0):
        blob = b"".join(
            m.to_bytes(16, "big") + struct.pack(">i", flags) + k.to_bytes(20, "big")
            for m, k in pairs
        )
        return _b64(blob)


class FakeSource:
    """In-memory element source that records every fetch."""

    def __init__(self, tagged=None, elements=None, fail_on=None):
        self.tagged = tagged or {}
        self.elements = elements or {}
        self.fail_on = fail_on
        self.calls = []
        self._lock = threading.Lock()

    def _record(self, call):
        with self._lock:
            self.calls.append(call)

    def fetch_tagged_elements(self, model_id, column_families):
        self._record(("tagged", model_id, tuple(column_families)))
        if self.fail_on is not None and model_id == self.fail_on[0]:
            raise self.fail_on[1]
        return list(self.tagged.get(model_id, []))

    def fetch_elements_by_key(self, model_id, keys, column_families):
        self._record(("keys", model_id, tuple(keys)))
        wanted = {to_short_key(k) for k in keys}
        return [e for e in self.elements.get(model_id, []) if to_short_key(e["k"]) in wanted]

    def key_calls(self, model_id=None):
        return [c for c in self.calls if c[0] == "keys" and (model_id is None or c[1] == model_id)]


class InFlightSource(FakeSource):
    """FakeSource that holds tagged scans until `limit` of them overlap."""

    def __init__(self, limit, tagged=None, elements=None, timeout=2.0):
        super().__init__(tagged=tagged, elements=elements)
        self.limit = limit
        self.timeout = timeout
        self.in_flight = 0
        self.max_in_flight = 0
        self._saturated = threading.Event()

    def fetch_tagged_elements(self, model_id, column_families):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            if self.in_flight >= self.limit:
                self._saturated.set()
        try:
            self._saturated.wait(self.timeout)
            return super().fetch_tagged_elements(model_id, column_families)
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture(scope="session")
def keys():
    return KeyFactory()


@pytest.fixture()
def make_source():
    return FakeSource


@pytest.fixture()
def make_in_flight_source():
    return InFlightSource
