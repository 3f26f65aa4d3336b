import typing as tp

from kayakcache._core.models import Request, Response

__all__ = ("MockRequestSender",)


class MockRequestSender:
    """
    A request sender that replays queued responses in order.

    Every request it receives is recorded in `requests`.
    """

    def __init__(self, responses: tp.Optional[tp.List[Response]] = None) -> None:
        self.mocked_responses: tp.List[Response] = list(responses or [])
        self.requests: tp.List[Request] = []

    async def __call__(self, request: Request) -> Response:
        self.requests.append(request)
        return self.mocked_responses.pop(0)

    def add_responses(self, responses: tp.List[Response]) -> None:
        self.mocked_responses.extend(responses)
