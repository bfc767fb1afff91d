from os import path
import httpx
import orjson as json

ENDPOINT = "https://blog-ignite.cdn.prismic.io/api/v2"


def load_fixture(name: str) -> dict:
    string = path.join(path.dirname(__file__), "fixtures", name)
    with open(string, encoding="utf-8") as file:
        return json.loads(file.read())


class FakeRepository:
    """Prismic API stand-in, served through httpx.MockTransport."""

    def __init__(self):
        self.api = load_fixture("api.json")
        self.pages = {
            "1": load_fixture("posts-page-1.json"),
            "2": load_fixture("posts-page-2.json"),
        }
        self.requests = []
        self.failures = []

    @property
    def documents(self) -> list:
        return [doc for page in self.pages.values() for doc in page["results"]]

    def fail_next(self, *responses):
        """Queue responses (status codes or exceptions) returned before the real ones."""
        self.failures.extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return httpx.Response(failure, json={"error": "failure"})
        if request.url.path == "/api/v2":
            return httpx.Response(200, json=self.api)
        if request.url.path == "/api/v2/documents/search":
            query = request.url.params.get("q", "")
            if "my.posts.uid" in query:
                results = [
                    doc for doc in self.documents if f'"{doc["uid"]}"' in query
                ]
                return httpx.Response(
                    200, json={"page": 1, "next_page": None, "results": results}
                )
            page = request.url.params.get("page", "1")
            return httpx.Response(200, json=self.pages[page])
        return httpx.Response(404, json={"error": "not found"})

    def searches(self) -> list:
        return [r for r in self.requests if r.url.path.endswith("/documents/search")]
