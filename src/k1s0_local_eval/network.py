"""仕様同期のネットワーククライアント"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import LocalEvalConfig
from .exceptions import LocalEvalError, LocalEvalErrorCodes


class IDListMetadata(BaseModel):
    """get_id_lists マニフェストの 1 エントリ。"""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    size: int = Field(ge=0)
    url: str
    creation_time: int = Field(default=0, alias="creationTime")
    file_id: str = Field(default="", alias="fileID")


@dataclass(frozen=True)
class RangeResponse:
    """ID リストの範囲取得結果。"""

    text: str
    content_length: int
    body_length: int

    @property
    def truncated(self) -> bool:
        return self.body_length < self.content_length


class SpecNetwork(Protocol):
    """同期リクエストを実行するネットワーククライアントのプロトコル。"""

    async def download_config_specs(self, since_time: int) -> dict[str, Any]: ...

    async def get_id_lists(self) -> dict[str, IDListMetadata]: ...

    async def fetch_id_list_range(self, url: str, start: int, end: int) -> RangeResponse: ...


class HttpSpecNetwork:
    """httpx を使った同期用 HTTP クライアント。"""

    def __init__(self, config: LocalEvalConfig) -> None:
        self._config = config
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if config.api_key:
            headers["X-API-Key"] = config.api_key
        self._headers = headers

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.api_url,
            headers=self._headers,
            timeout=self._config.timeout_seconds,
        )

    def _handle_error(self, resp: httpx.Response, context: str) -> None:
        if resp.status_code >= 400:
            raise LocalEvalError(
                code=LocalEvalErrorCodes.HTTP_ERROR,
                message=f"{context}: HTTP {resp.status_code}: {resp.text}",
            )

    def _json_object(self, resp: httpx.Response, context: str) -> dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as e:
            raise LocalEvalError(
                code=LocalEvalErrorCodes.PARSE_ERROR,
                message=f"{context}: response is not JSON",
                cause=e,
            ) from e
        if not isinstance(data, dict):
            raise LocalEvalError(
                code=LocalEvalErrorCodes.PARSE_ERROR,
                message=f"{context}: response must be a JSON object",
            )
        return data

    async def download_config_specs(self, since_time: int) -> dict[str, Any]:
        try:
            async with self._make_client() as client:
                resp = await client.post(
                    "/download_config_specs", json={"sinceTime": since_time}
                )
            self._handle_error(resp, "download_config_specs")
            return self._json_object(resp, "download_config_specs")
        except LocalEvalError:
            raise
        except Exception as e:
            raise LocalEvalError(
                code=LocalEvalErrorCodes.NETWORK_ERROR,
                message=f"Failed to download config specs: {e}",
                cause=e,
            ) from e

    async def get_id_lists(self) -> dict[str, IDListMetadata]:
        try:
            async with self._make_client() as client:
                resp = await client.post("/get_id_lists", json={})
            self._handle_error(resp, "get_id_lists")
            data = self._json_object(resp, "get_id_lists")
            return {
                name: IDListMetadata.model_validate({"name": name, **entry})
                for name, entry in data.items()
            }
        except LocalEvalError:
            raise
        except (ValidationError, TypeError) as e:
            raise LocalEvalError(
                code=LocalEvalErrorCodes.PARSE_ERROR,
                message=f"Invalid ID list manifest: {e}",
                cause=e,
            ) from e
        except Exception as e:
            raise LocalEvalError(
                code=LocalEvalErrorCodes.NETWORK_ERROR,
                message=f"Failed to get ID lists: {e}",
                cause=e,
            ) from e

    async def fetch_id_list_range(self, url: str, start: int, end: int) -> RangeResponse:
        """url の [start, end) バイトを取得する。"""
        try:
            async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                resp = await client.get(url, headers={"Range": f"bytes={start}-{end - 1}"})
            self._handle_error(resp, f"fetch_id_list_range({url})")
            header = resp.headers.get("content-length")
            if header is None or not header.isdigit():
                raise LocalEvalError(
                    code=LocalEvalErrorCodes.ID_LIST_ERROR,
                    message=f"ID list response without Content-Length: {url}",
                )
            return RangeResponse(
                text=resp.text,
                content_length=int(header),
                body_length=len(resp.content),
            )
        except LocalEvalError:
            raise
        except Exception as e:
            raise LocalEvalError(
                code=LocalEvalErrorCodes.NETWORK_ERROR,
                message=f"Failed to fetch ID list: {e}",
                cause=e,
            ) from e
