import unittest
import httpx
from abs_presence.clients.abs_client import ABSClient
from abs_presence.exceptions import CoverNotFoundError, ParseError, TransportError
from abs_presence.models import ListeningSession, TrackerState
from abs_presence.sampler import SessionSampler

SESSION = {
    "id": "ses_1",
    "displayTitle": "Dune",
    "displayAuthor": "Frank Herbert",
    "currentTime": 100.5,
    "duration": 1000,
    "startedAt": 1_000,
    "updatedAt": 100_000,
}

def session(title, started, updated, elapsed=10):
    return ListeningSession(displayTitle=title, currentTime=elapsed, duration=100, startedAt=started, updatedAt=updated)

class TestABSClient(unittest.IsolatedAsyncioTestCase):
    def make_client(self, handler):
        self.requests = []

        def recording(request):
            self.requests.append(request)
            return handler(request)

        return ABSClient(base_url="http://abs.local/", token="secret", transport=httpx.MockTransport(recording))

    async def test_listening_sessions_parsed(self):
        client = self.make_client(lambda r: httpx.Response(200, json={"sessions": [SESSION], "total": 1}))
        sessions = await client.get_listening_sessions(limit=10)

        self.assertEqual(len(sessions), 1)
        self.assertEqual(sessions[0].displayTitle, "Dune")
        self.assertEqual(sessions[0].displayAuthor, "Frank Herbert")
        request = self.requests[0]
        self.assertEqual(request.url.path, "/api/me/listening-sessions")
        self.assertEqual(request.url.params["itemsPerPage"], "10")
        self.assertEqual(request.headers["Authorization"], "Bearer secret")
        await client.close()

    async def test_unknown_fields_ignored(self):
        record = {**SESSION, "mediaMetadata": {"genres": ["Science Fiction"]}, "deviceInfo": {"clientName": "Abs Android"}}
        client = self.make_client(lambda r: httpx.Response(200, json={"sessions": [record]}))
        sessions = await client.get_listening_sessions()
        self.assertEqual(sessions[0].displayTitle, "Dune")
        self.assertNotIn("mediaMetadata", sessions[0].model_dump())

    async def test_author_fallback(self):
        record = {k: v for k, v in SESSION.items() if k != "displayAuthor"}
        record["author"] = "Herbert"
        client = self.make_client(lambda r: httpx.Response(200, json={"sessions": [record]}))
        sessions = await client.get_listening_sessions()
        self.assertEqual(sessions[0].to_snapshot().author, "Herbert")

    async def test_empty_sessions_is_not_an_error(self):
        client = self.make_client(lambda r: httpx.Response(200, json={"sessions": []}))
        self.assertEqual(await client.get_listening_sessions(), [])

    async def test_server_error_is_transport_error(self):
        client = self.make_client(lambda r: httpx.Response(500, text="boom"))
        with self.assertRaises(TransportError):
            await client.get_listening_sessions()

    async def test_connection_error_is_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = self.make_client(refuse)
        with self.assertRaises(TransportError):
            await client.get_listening_sessions()

    async def test_non_json_is_parse_error(self):
        client = self.make_client(lambda r: httpx.Response(200, text="<html>login</html>"))
        with self.assertRaises(ParseError):
            await client.get_listening_sessions()

    async def test_missing_fields_is_parse_error(self):
        client = self.make_client(lambda r: httpx.Response(200, json={"sessions": [{"displayTitle": "Dune"}]}))
        with self.assertRaises(ParseError):
            await client.get_listening_sessions()

    async def test_missing_sessions_key_is_parse_error(self):
        client = self.make_client(lambda r: httpx.Response(200, json={"results": []}))
        with self.assertRaises(ParseError):
            await client.get_listening_sessions()

    async def test_search_cover_returns_first_and_caches(self):
        client = self.make_client(lambda r: httpx.Response(200, json={"results": ["https://a/1.jpg", "https://a/2.jpg"]}))

        self.assertEqual(await client.search_cover("Dune", "Herbert"), "https://a/1.jpg")
        self.assertEqual(await client.search_cover("Dune", "Herbert"), "https://a/1.jpg")

        self.assertEqual(len(self.requests), 1)
        params = self.requests[0].url.params
        self.assertEqual(self.requests[0].url.path, "/api/search/covers")
        self.assertEqual(params["title"], "Dune")
        self.assertEqual(params["author"], "Herbert")
        self.assertEqual(params["provider"], "audible")

    async def test_search_cover_no_results(self):
        client = self.make_client(lambda r: httpx.Response(200, json={"results": []}))
        with self.assertRaises(CoverNotFoundError):
            await client.search_cover("Unknown", "Nobody")
        # Failures are not cached
        with self.assertRaises(CoverNotFoundError):
            await client.search_cover("Unknown", "Nobody")
        self.assertEqual(len(self.requests), 2)

    async def test_search_cover_malformed(self):
        client = self.make_client(lambda r: httpx.Response(200, json={"error": "bad provider"}))
        with self.assertRaises(ParseError):
            await client.search_cover("Dune", "Herbert")

    async def test_initialize_reads_user(self):
        client = self.make_client(lambda r: httpx.Response(200, json={"user": {"id": "usr_1", "username": "reader"}}))
        await client.initialize()
        self.assertEqual(client.user_id, "usr_1")

    async def test_initialize_unauthorized_raises(self):
        client = self.make_client(lambda r: httpx.Response(401, text="Unauthorized"))
        with self.assertRaises(TransportError):
            await client.initialize()

class TestSessionSampler(unittest.TestCase):
    def setUp(self):
        self.state = TrackerState()
        self.sampler = SessionSampler(abs_client=None, state=self.state)

    def test_first_poll_without_cursor(self):
        snapshot = self.sampler.select_active([session("Dune", 1_000, 100_000)])
        self.assertEqual(snapshot.book_title, "Dune")
        self.assertEqual(self.state.last_seen_updated_at, 100_000)

    def test_never_updated_session_not_active(self):
        self.assertIsNone(self.sampler.select_active([session("Dune", 5_000, 5_000)]))

    def test_no_sessions(self):
        self.state.last_seen_updated_at = 50_000
        self.assertIsNone(self.sampler.select_active([]))
        self.assertEqual(self.state.last_seen_updated_at, 50_000)

    def test_short_session_after_long_gap_waits_one_poll(self):
        self.state.last_seen_updated_at = 50_000
        sessions = [session("Dune", 190_000, 200_000)]

        # Running 10s, but 150s since the cursor
        self.assertIsNone(self.sampler.select_active(sessions))
        # Cursor advanced regardless, so the next poll qualifies
        self.assertEqual(self.state.last_seen_updated_at, 200_000)
        self.assertEqual(self.sampler.select_active(sessions).book_title, "Dune")

    def test_first_qualifying_session_wins(self):
        self.state.last_seen_updated_at = 100_000
        sessions = [
            session("Fresh", 115_000, 120_000),    # running 5s, gap 20s
            session("Long", 10_000, 110_000),      # running 100s, gap 10s
            session("Older", 1_000, 90_000),
        ]
        self.assertEqual(self.sampler.select_active(sessions).book_title, "Long")
        self.assertEqual(self.state.last_seen_updated_at, 120_000)

    def test_finished_session_behind_cursor_still_qualifies(self):
        # Only the pause check filters these out
        self.state.last_seen_updated_at = 300_000
        snapshot = self.sampler.select_active([session("Dune", 1_000, 100_000)])
        self.assertEqual(snapshot.book_title, "Dune")

    def test_finished_session_selected_on_first_poll(self):
        self.assertEqual(self.sampler.select_active([session("Dune", 1_000, 2_000)]).book_title, "Dune")

    def test_cursor_never_moves_backwards(self):
        self.state.last_seen_updated_at = 300_000
        self.sampler.select_active([session("Dune", 1_000, 100_000)])
        self.assertEqual(self.state.last_seen_updated_at, 300_000)

if __name__ == '__main__':
    unittest.main()
