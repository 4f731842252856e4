"""
Attendance API calls — token refresh, today's DTR, clock in/out.

All calls are blocking and bounded by API_TIMEOUT. Failures are raised as
AuthError / ApiError; the engine decides what to do with them. Every call
here is a POST, which the session adapter never retries: one invocation,
one request.
"""

import os

import requests
from dotenv import set_key

from .config import log
from .constants import (
    API_TIMEOUT, TOKEN_PATH, ATTENDANCE_LOGIN_PATH, ATTENDANCE_LOGOUT_PATH,
    OAUTH_CLIENT_ID, OAUTH_SCOPE,
)
from .errors import ApiError, AuthError
from .models import AttendanceSnapshot
from . import http_client


class EnvTokenStore:
    """Writes refreshed tokens back to the .env file so a restart picks them up."""

    def __init__(self, env_path):
        self._env_path = env_path

    def save(self, access_token, refresh_token):
        # The process environment wins over .env on reload, so keep it current too
        os.environ["EMAPTA_TOKEN"] = access_token
        os.environ["EMAPTA_REFRESH_TOKEN"] = refresh_token
        if not self._env_path or not self._env_path.exists():
            log.warning(".env file not found at %s — refreshed tokens kept in memory only", self._env_path)
            return False
        try:
            set_key(str(self._env_path), "EMAPTA_TOKEN", access_token, quote_mode="never")
            set_key(str(self._env_path), "EMAPTA_REFRESH_TOKEN", refresh_token, quote_mode="never")
        except OSError as e:
            log.error("Failed to update tokens in %s: %s", self._env_path, e)
            return False
        log.info("Tokens updated in %s", self._env_path)
        return True


class AttendanceClient:
    """Thin wrapper over the remote DTR endpoints. Holds the current token pair."""

    def __init__(self, settings, session=None, token_store=None):
        self._base_url = settings.base_url
        self._token = settings.token
        self._refresh_token = settings.refresh_token
        self._session = session or http_client.create_session()
        self._token_store = token_store

    # ─── Credentials ─────────────────────────────────────────

    def has_valid_credentials(self):
        has_token = bool(self._token and self._token.strip())
        log.debug("Token check: %s", "token exists" if has_token else "no token")
        return has_token

    def refresh_credentials(self):
        """
        Exchange the refresh token for a new token pair.
        Without a refresh token the current access token is kept as is.
        Raises AuthError on any failure; the old token is not reused.
        """
        if not self._refresh_token:
            log.debug("No refresh token configured — using existing access token")
            return

        log.info("Refreshing access token...")
        payload = {
            "grant_type": "refresh_token",
            "client_id": OAUTH_CLIENT_ID,
            "refresh_token": self._refresh_token,
            "scope": OAUTH_SCOPE,
        }
        try:
            resp = self._session.post(self._url(TOKEN_PATH), json=payload, timeout=API_TIMEOUT)
        except requests.RequestException as e:
            raise AuthError(f"Token refresh failed: {e}") from e

        if resp.status_code != 200:
            raise AuthError(f"Token refresh rejected: HTTP {resp.status_code}")
        try:
            body = resp.json()
        except ValueError:
            body = None
        result = body.get("result") if isinstance(body, dict) else None
        access_token = result.get("access_token") if isinstance(result, dict) else None
        if not access_token:
            raise AuthError("Token refresh failed: invalid response")

        self._token = access_token
        self._refresh_token = result.get("refresh_token") or self._refresh_token
        log.info("Token refreshed successfully")
        if self._token_store is not None:
            self._token_store.save(self._token, self._refresh_token)

    # ─── Attendance ──────────────────────────────────────────

    def fetch_today_attendance(self):
        resp = self._post(ATTENDANCE_LOGIN_PATH, "attendance fetch")
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError("Invalid response from attendance API") from e
        if not isinstance(data, dict):
            raise ApiError("Invalid response from attendance API")
        snapshot = AttendanceSnapshot.from_payload(data)
        log.info("Attendance status: %s (in=%s, out=%s)",
                 snapshot.status, snapshot.clock_in_time or "-", snapshot.clock_out_time or "-")
        return snapshot

    def clock_in(self):
        self._post(ATTENDANCE_LOGIN_PATH, "clock-in")
        log.info("Clock-in accepted by server")

    def clock_out(self):
        self._post(ATTENDANCE_LOGOUT_PATH, "clock-out")
        log.info("Clock-out accepted by server")

    # ─── Helpers ─────────────────────────────────────────────

    def _url(self, path):
        return f"{self._base_url}{path}"

    def _headers(self):
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _post(self, path, what):
        try:
            resp = self._session.post(self._url(path), headers=self._headers(), timeout=API_TIMEOUT)
        except requests.ConnectionError as e:
            self._session = http_client.reset_session(self._session)
            raise ApiError(f"{what} network error: {e}") from e
        except requests.RequestException as e:
            raise ApiError(f"{what} failed: {e}") from e

        if resp.status_code == 401:
            raise ApiError(f"{what} rejected (401) — token may be invalid")
        if resp.status_code != 200:
            raise ApiError(f"{what} failed: HTTP {resp.status_code} — {resp.text[:200]}")
        return resp
