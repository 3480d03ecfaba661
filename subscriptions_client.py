"""Subscriptions API client.

A thin wrapper around the REST API served by ``subscriptions_api``.
It uses the ``requests`` library internally and exposes one method per
endpoint:

* :meth:`list_subscriptions` – return every subscription.
* :meth:`get_subscription` – fetch a single subscription by id.
* :meth:`create_subscription` – create a subscription.
* :meth:`update_subscription` – replace the fields of a subscription.
* :meth:`delete_subscription` – delete a subscription.
* :meth:`total_cost` – sum the prices of a user's subscriptions.

Every method returns a tuple ``(data, error)``.  On success ``error``
is ``None``; on failure ``data`` is ``None`` and ``error`` is a
dictionary with ``status_code`` and ``message`` keys.  ``message`` is
the ``detail`` reported by the server when there is one.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import requests


logger = logging.getLogger(__name__)

Error = Dict[str, Any]


class SubscriptionsAPI:
    """Client for interacting with the subscriptions API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_prefix: str = "/api/v1",
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        """Initialise the API client.

        Args:
            base_url: Base URL of the server, e.g. ``http://localhost:8000``.
            api_prefix: Path under which the versioned API is mounted.
            session: Optional requests session.  If not supplied a
                session will be created automatically.
            timeout: Seconds to wait for each response.
        """
        self.base_url = base_url.rstrip("/") + api_prefix
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Low level HTTP helpers
    # ------------------------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Tuple[Optional[Any], Optional[Error]]:
        """Perform an HTTP request to the API.

        Returns:
            A tuple ``(data, error)``.  ``data`` contains the parsed JSON
            response on success (``None`` for empty bodies).
        """
        url = f"{self.base_url}{path}"
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_body,
                timeout=self.timeout,
            )
            response.raise_for_status()
            if response.content:
                return response.json(), None
            return None, None
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            message = ""
            if exc.response is not None:
                try:
                    err_json = exc.response.json()
                    message = err_json.get("detail") or str(err_json)
                except ValueError:
                    message = exc.response.text
            if not message:
                message = str(exc)
            logger.error("API request failed (%s): %s", status, message)
            return None, {"status_code": status, "message": message}
        except requests.RequestException as exc:
            logger.error("API request failed: %s", exc)
            return None, {"status_code": None, "message": str(exc)}

    @staticmethod
    def _payload(
        user_id: UUID | str,
        service_name: str,
        price: int,
        start_date: date,
        end_date: Optional[date],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "user_id": str(user_id),
            "service_name": service_name,
            "price": price,
            "start_date": start_date.isoformat(),
        }
        if end_date is not None:
            payload["end_date"] = end_date.isoformat()
        return payload

    # ------------------------------------------------------------------
    # Subscription operations
    # ------------------------------------------------------------------
    def list_subscriptions(self) -> Tuple[List[Dict[str, Any]], Optional[Error]]:
        """Retrieve all subscriptions.

        On failure the list is empty and ``error`` describes the problem.
        """
        data, error = self._request("GET", "/subscriptions/")
        if error:
            return [], error
        return data or [], None

    def get_subscription(self, subscription_id: UUID | str) -> Tuple[Optional[Dict[str, Any]], Optional[Error]]:
        return self._request("GET", f"/subscriptions/{subscription_id}")

    def create_subscription(
        self,
        user_id: UUID | str,
        service_name: str,
        price: int,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> Tuple[Optional[Dict[str, Any]], Optional[Error]]:
        payload = self._payload(user_id, service_name, price, start_date, end_date)
        return self._request("POST", "/subscriptions/", json_body=payload)

    def update_subscription(
        self,
        subscription_id: UUID | str,
        user_id: UUID | str,
        service_name: str,
        price: int,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> Tuple[Optional[Dict[str, Any]], Optional[Error]]:
        """Replace every field of a subscription.

        Leaving ``end_date`` out clears the stored end date.
        """
        payload = self._payload(user_id, service_name, price, start_date, end_date)
        return self._request("PATCH", f"/subscriptions/{subscription_id}", json_body=payload)

    def delete_subscription(self, subscription_id: UUID | str) -> Tuple[bool, Optional[Error]]:
        _, error = self._request("DELETE", f"/subscriptions/{subscription_id}")
        return error is None, error

    def total_cost(
        self,
        user_id: UUID | str,
        service_name: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Tuple[Optional[int], Optional[Error]]:
        """Return the summed price of matching subscriptions."""
        params: Dict[str, Any] = {"user_id": str(user_id), "service_name": service_name}
        if start_date is not None:
            params["start_date"] = start_date.isoformat()
        if end_date is not None:
            params["end_date"] = end_date.isoformat()
        data, error = self._request("GET", "/subscriptions/total-cost", params=params)
        if error:
            return None, error
        return data.get("total_cost", 0), None
