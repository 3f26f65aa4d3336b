from ._async_httpx import (
    AsyncHttpxSender as AsyncHttpxSender,
    AsyncServiceWorkerTransport as AsyncServiceWorkerTransport,
)

__all__ = ("AsyncHttpxSender", "AsyncServiceWorkerTransport")
