from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from .columns import ASSET_FAMILIES, ColumnFamilies, QC, is_tagged
from .encoding import ElementFlags
from .errors import TandemApiError

LOG = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://tandem.autodesk.com/api/"
DEFAULT_TIMEOUT = 30.0

AuthProvider = Callable[[], str]


def raise_for_response(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    try:
        payload = response.json()
        detail = payload.get("message") or payload.get("error") or payload
    except (ValueError, AttributeError):
        detail = response.text[:200]
    raise TandemApiError(
        f"{response.request.method} {response.request.url} failed with {response.status_code}: {detail}",
        status_code=response.status_code,
        url=str(response.request.url),
    )


class TandemClient:
    """Thin wrapper over the Tandem REST API.

    ``auth_provider`` is called before every request and must return a valid
    bearer token; the client never caches or refreshes tokens itself.
    """

    def __init__(
        self,
        auth_provider: AuthProvider,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._auth_provider = auth_provider
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._http = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    def base_path(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "TandemClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        token = self._auth_provider()
        try:
            response = self._http.request(
                method,
                path,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise TandemApiError(f"{method} {path} failed: {exc}", url=path) from exc
        raise_for_response(response)
        try:
            return response.json()
        except ValueError as exc:
            raise TandemApiError(
                f"{method} {path} returned invalid JSON",
                status_code=response.status_code,
                url=str(response.request.url),
            ) from exc

    # ------------- metadata -------------
    def get_facility(self, facility_id: str) -> Dict[str, Any]:
        return self._request("GET", f"v1/twins/{facility_id}")

    def get_facility_template(self, facility_id: str) -> Dict[str, Any]:
        return self._request("GET", f"v1/twins/{facility_id}/inlinetemplate")

    def get_model(self, model_id: str) -> Dict[str, Any]:
        return self._request("GET", f"v1/modeldata/{model_id}/model")

    def get_model_schema(self, model_id: str) -> Dict[str, Any]:
        return self._request("GET", f"v1/modeldata/{model_id}/schema")

    # ------------- element scans -------------
    def get_elements(
        self,
        model_id: str,
        keys: Optional[Sequence[str]] = None,
        column_families: Sequence[str] = (ColumnFamilies.Standard,),
    ) -> List[Dict[str, Any]]:
        inputs: Dict[str, Any] = {
            "families": list(column_families),
            "includeHistory": False,
            "skipArrays": True,
        }
        if keys:
            inputs["keys"] = list(keys)
        data = self._request("POST", f"v2/modeldata/{model_id}/scan", json=inputs)
        # scan responses may lead with a version marker string
        return [item for item in data if isinstance(item, dict) and QC.Key in item]

    def _get_flagged(self, model_id: str, flags: int, column_families: Sequence[str]) -> List[Dict[str, Any]]:
        return [
            item
            for item in self.get_elements(model_id, column_families=column_families)
            if item.get(QC.ElementFlags) == flags
        ]

    def get_levels(self, model_id: str, column_families: Sequence[str] = (ColumnFamilies.Standard,)) -> List[Dict[str, Any]]:
        return self._get_flagged(model_id, ElementFlags.Level, column_families)

    def get_rooms(self, model_id: str, column_families: Sequence[str] = (ColumnFamilies.Standard,)) -> List[Dict[str, Any]]:
        return self._get_flagged(model_id, ElementFlags.Room, column_families)

    def get_streams(self, model_id: str, column_families: Sequence[str] = (ColumnFamilies.Standard,)) -> List[Dict[str, Any]]:
        return self._get_flagged(model_id, ElementFlags.Stream, column_families)

    def get_tagged_assets(self, model_id: str, column_families: Sequence[str] = ASSET_FAMILIES) -> List[Dict[str, Any]]:
        """Elements carrying at least one custom (``z:``) property."""
        return [item for item in self.get_elements(model_id, column_families=column_families) if is_tagged(item)]

    # ------------- resolver source -------------
    def fetch_tagged_elements(self, model_id: str, column_families: Sequence[str]) -> List[Dict[str, Any]]:
        LOG.debug("Scanning tagged elements of %s", model_id)
        return self.get_tagged_assets(model_id, column_families)

    def fetch_elements_by_key(
        self, model_id: str, keys: Sequence[str], column_families: Sequence[str]
    ) -> List[Dict[str, Any]]:
        if not keys:
            return []
        LOG.debug("Fetching %d element(s) from %s", len(keys), model_id)
        return self.get_elements(model_id, keys, column_families)


__all__ = ["DEFAULT_BASE_URL", "TandemClient", "raise_for_response"]
