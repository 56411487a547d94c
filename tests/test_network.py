"""HttpSpecNetwork のユニットテスト（respx モック）"""

import json

import httpx
import pytest
import respx
from k1s0_local_eval import HttpSpecNetwork, LocalEvalConfig, LocalEvalError, LocalEvalErrorCodes
from k1s0_local_eval.network import RangeResponse

BASE_URL = "http://k1s0-api.test/v1"
LIST_URL = "http://id-lists.test/user_id_list"


def make_network(api_key: str = "") -> HttpSpecNetwork:
    return HttpSpecNetwork(LocalEvalConfig(api_url=BASE_URL, api_key=api_key))


@respx.mock
async def test_download_config_specs_success() -> None:
    """仕様ダウンロード成功。sinceTime と API キーを送信すること。"""
    route = respx.post(f"{BASE_URL}/download_config_specs").mock(
        return_value=httpx.Response(200, json={"has_updates": True, "time": 5, "feature_gates": []})
    )
    payload = await make_network(api_key="secret-key").download_config_specs(1234)
    assert payload["time"] == 5
    request = route.calls.last.request
    assert json.loads(request.content) == {"sinceTime": 1234}
    assert request.headers["X-API-Key"] == "secret-key"


@respx.mock
async def test_download_config_specs_http_error() -> None:
    """HTTP エラーは HTTP_ERROR。"""
    respx.post(f"{BASE_URL}/download_config_specs").mock(
        return_value=httpx.Response(500, text="Internal Server Error")
    )
    with pytest.raises(LocalEvalError) as exc_info:
        await make_network().download_config_specs(0)
    assert exc_info.value.code == LocalEvalErrorCodes.HTTP_ERROR


@respx.mock
async def test_download_config_specs_invalid_json() -> None:
    """JSON でない応答は PARSE_ERROR。"""
    respx.post(f"{BASE_URL}/download_config_specs").mock(
        return_value=httpx.Response(200, text="<html></html>")
    )
    with pytest.raises(LocalEvalError) as exc_info:
        await make_network().download_config_specs(0)
    assert exc_info.value.code == LocalEvalErrorCodes.PARSE_ERROR


@respx.mock
async def test_download_config_specs_connection_error() -> None:
    """接続エラーは NETWORK_ERROR。"""
    respx.post(f"{BASE_URL}/download_config_specs").mock(
        side_effect=httpx.ConnectError("connection refused")
    )
    with pytest.raises(LocalEvalError) as exc_info:
        await make_network().download_config_specs(0)
    assert exc_info.value.code == LocalEvalErrorCodes.NETWORK_ERROR
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@respx.mock
async def test_get_id_lists_success() -> None:
    """マニフェストを IDListMetadata に変換すること。"""
    respx.post(f"{BASE_URL}/get_id_lists").mock(
        return_value=httpx.Response(
            200,
            json={
                "user_id_list": {
                    "name": "user_id_list",
                    "size": 20,
                    "url": LIST_URL,
                    "creationTime": 1,
                    "fileID": "file-1",
                }
            },
        )
    )
    manifest = await make_network().get_id_lists()
    meta = manifest["user_id_list"]
    assert meta.size == 20
    assert meta.url == LIST_URL
    assert meta.file_id == "file-1"
    assert meta.creation_time == 1


@respx.mock
async def test_get_id_lists_invalid_entry() -> None:
    """不正なマニフェストは PARSE_ERROR。"""
    respx.post(f"{BASE_URL}/get_id_lists").mock(
        return_value=httpx.Response(200, json={"user_id_list": {"size": -1}})
    )
    with pytest.raises(LocalEvalError) as exc_info:
        await make_network().get_id_lists()
    assert exc_info.value.code == LocalEvalErrorCodes.PARSE_ERROR


@respx.mock
async def test_fetch_id_list_range() -> None:
    """Range ヘッダーで [start, end) を要求すること。"""
    route = respx.get(LIST_URL).mock(
        return_value=httpx.Response(206, text="+Z/hEKLio\n+M5m6a10x\n")
    )
    resp = await make_network().fetch_id_list_range(LIST_URL, 0, 20)
    assert route.calls.last.request.headers["Range"] == "bytes=0-19"
    assert resp.text == "+Z/hEKLio\n+M5m6a10x\n"
    assert resp.content_length == 20
    assert resp.truncated is False


@respx.mock
async def test_fetch_id_list_range_truncated() -> None:
    """本文が Content-Length より短ければ truncated。"""
    respx.get(LIST_URL).mock(
        return_value=httpx.Response(206, content=b"+Z/hEKLio\n", headers={"Content-Length": "20"})
    )
    resp = await make_network().fetch_id_list_range(LIST_URL, 0, 20)
    assert resp.content_length == 20
    assert resp.body_length == 10
    assert resp.truncated is True


@respx.mock
async def test_fetch_id_list_range_without_content_length() -> None:
    """Content-Length の無い応答は ID_LIST_ERROR。"""
    respx.get(LIST_URL).mock(
        return_value=httpx.Response(206, stream=httpx.ByteStream(b"+Z/hEKLio\n"))
    )
    with pytest.raises(LocalEvalError) as exc_info:
        await make_network().fetch_id_list_range(LIST_URL, 0, 20)
    assert exc_info.value.code == LocalEvalErrorCodes.ID_LIST_ERROR


def test_range_response_truncated() -> None:
    """truncated は本文長と Content-Length の比較。"""
    assert RangeResponse(text="", content_length=5, body_length=4).truncated
    assert not RangeResponse(text="", content_length=5, body_length=5).truncated
