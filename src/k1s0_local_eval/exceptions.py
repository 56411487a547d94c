"""local_eval ライブラリの例外型定義"""

from __future__ import annotations


class LocalEvalError(Exception):
    """local_eval ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class LocalEvalErrorCodes:
    """LocalEvalError のエラーコード定数。"""

    NETWORK_ERROR: str = "NETWORK_ERROR"
    HTTP_ERROR: str = "HTTP_ERROR"
    PARSE_ERROR: str = "PARSE_ERROR"
    ADAPTER_ERROR: str = "ADAPTER_ERROR"
    CONFIG_ERROR: str = "CONFIG_ERROR"
    ID_LIST_ERROR: str = "ID_LIST_ERROR"
