from __future__ import annotations

from pathlib import Path

from repomap.analyzers.rest_api import RestApiAnalyzer, categorize_api, is_api_url
from repomap.config import RepositoryConfig


def _write(root: Path, rel: str, content: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _analyzer(repo: Path) -> RestApiAnalyzer:
    return RestApiAnalyzer(RepositoryConfig(name="web", path=str(repo), type="nextjs"))


def test_fetch_and_axios_call_sites(tmp_path: Path) -> None:
    repo = tmp_path / "web"
    _write(
        repo,
        "src/api/client.ts",
        """export async function loadUsers() {
  const response = await fetch("/api/users");
  return response.json();
}

export function createOrder(token: string) {
  return axios.post(buildUrl("/orders"), { headers: { Authorization: token } });
}
""",
    )

    bag = _analyzer(repo).run()

    assert [call.id for call in bag.api_calls] == ["api-1", "api-2"]
    users, orders = bag.api_calls
    assert users.method == "GET"
    assert users.url == "/api/users"
    assert users.category == "Internal API"
    assert users.call_type == "fetch"
    assert users.containing_function == "loadUsers"
    assert users.requires_auth is False

    assert orders.method == "POST"
    assert orders.url == "[buildUrl] /orders"
    assert orders.category == "Dynamic URL"
    assert orders.call_type == "axios"
    assert orders.requires_auth is True
    assert bag.coverage is not None and bag.coverage.ts_files_scanned == 1


def test_static_assets_templates_and_swr(tmp_path: Path) -> None:
    repo = tmp_path / "web"
    _write(
        repo,
        "src/hooks/useItems.ts",
        """export function useItems(id?: string) {
  fetch("/styles/app.css");
  fetch(`/api/items/${id}`, { method: "delete", credentials: "include" });
  return useSWR(id ? `/api/items/${id}/detail` : null, fetcher);
}
""",
    )

    calls = _analyzer(repo).run().api_calls

    assert [(call.method, call.url, call.call_type) for call in calls] == [
        ("DELETE", "/api/items/:param", "fetch"),
        ("GET", "/api/items/:param/detail", "useSWR"),
    ]
    assert calls[0].requires_auth is True


def test_test_and_vendor_files_are_skipped(tmp_path: Path) -> None:
    repo = tmp_path / "web"
    _write(repo, "src/api/client.test.ts", 'fetch("/api/users");\n')
    _write(repo, "node_modules/lib/index.js", 'fetch("/api/users");\n')

    assert _analyzer(repo).run().api_calls == []


def test_url_classification() -> None:
    assert is_api_url("https://api.stripe.com/v1/charges")
    assert not is_api_url("logo.png")
    assert not is_api_url("data:text/plain,hello")
    assert categorize_api("https://api.stripe.com/v1/charges") == "Stripe"
    assert categorize_api("[endpoint]") == "Dynamic URL"
    assert categorize_api("/api/items/:param") == "Internal API"
    assert categorize_api("/login") == "Internal Route"
    assert categorize_api("https://example.com/feed.json") is None


def test_containing_function_is_the_enclosing_function_not_a_local(tmp_path: Path) -> None:
    repo = tmp_path / "web"
    _write(
        repo,
        "src/api/users.ts",
        """export async function loadUsers() {
  const res = await fetch("/api/users");
  return res.json();
}

class Api {
  async load() {
    const { data } = await axios.get("/api/x");
    return data;
  }
}

export const saveItem = async (item: unknown) => {
  const result = await axios.post("/api/items", item);
  return result;
};

export const Panel = memo(function () {
  useEffect(() => {
    fetch("/api/panel");
  }, []);
});

fetch("/api/top");
""",
    )

    calls = _analyzer(repo).run().api_calls

    assert [(call.url, call.containing_function) for call in calls] == [
        ("/api/users", "loadUsers"),
        ("/api/x", "load"),
        ("/api/items", "saveItem"),
        ("/api/panel", "Panel"),
        ("/api/top", "unknown"),
    ]


def test_undecodable_file_does_not_drop_other_files(tmp_path: Path) -> None:
    repo = tmp_path / "web"
    _write(repo, "src/api/good.ts", 'export const ping = () => fetch("/api/ping");\n')
    bad = repo / "src/api/bad.ts"
    bad.write_bytes(b'fetch("/api/broken");\n// \xff\xfe\n')

    bag = _analyzer(repo).run()

    assert [call.url for call in bag.api_calls] == ["/api/ping"]
    assert bag.api_calls[0].containing_function == "ping"
    assert bag.coverage is not None and bag.coverage.ts_files_scanned == 1
