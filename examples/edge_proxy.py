#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "kayakcache[server]",
# ]
#
# [tool.uv.sources]
# kayakcache = { path = "../", editable = true }
# ///

import logging

import uvicorn

from kayakcache import AsyncSqliteStorage
from kayakcache.asgi import EdgeProxyApp

logging.basicConfig(level=logging.DEBUG)

app = EdgeProxyApp(storage=AsyncSqliteStorage(database_path="edge.db"))


if __name__ == "__main__":
    # try: curl -i "http://127.0.0.1:8787/proxy?apiurl=https%3A%2F%2Fhttpbin.org%2Fget"
    uvicorn.run(app, host="127.0.0.1", port=8787)
