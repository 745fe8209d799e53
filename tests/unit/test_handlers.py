"""
Unit tests for the route handlers.
"""

import io
from pathlib import Path

import pytest

from minihttp.config import ServerConfig
from minihttp.handlers import FileHandler, register_routes
from minihttp.handlers.basic import echo, root, user_agent
from minihttp.http import BadRequest, InternalError, MethodNotAllowed, NotFound, Router
from minihttp.http.request import Headers, HTTPRequest


def make_request(method: str, path: str, headers: dict = None, body: bytes = b"", **params) -> HTTPRequest:
    h = Headers()
    for name, value in (headers or {}).items():
        h.add(name, value)
    return HTTPRequest(
        method=method,
        path=path,
        headers=h,
        path_params=params,
        stream=io.BytesIO(body),
    )


def body_of(response) -> bytes:
    sink = io.BytesIO()
    response.write_to(sink)
    return sink.getvalue().partition(b"\r\n\r\n")[2]


class TestBasicHandlers:

    def test_root(self):
        response = root(make_request("POST", "/"))
        assert response.status == 200
        assert response.headers == []
        assert response.body is None

    def test_echo(self):
        response = echo(make_request("GET", "/echo/abc", rest="abc"))

        assert response.headers == [("Content-Type", "text/plain"), ("Content-Length", "3")]
        assert response.body == b"abc"

    def test_echo_empty(self):
        response = echo(make_request("GET", "/echo/", rest=""))
        assert response.get_header("Content-Length") == "0"
        assert response.body == b""

    def test_echo_preserves_raw_bytes(self):
        raw = b"caf\xe9".decode("iso-8859-1")
        response = echo(make_request("GET", "/echo/" + raw, rest=raw))
        assert response.body == b"caf\xe9"

    def test_user_agent(self):
        response = user_agent(make_request("GET", "/user-agent", {"user-agent": "foobar/1.2.3"}))

        assert response.status == 200
        assert response.body == b"foobar/1.2.3"
        assert response.get_header("Content-Length") == "12"

    def test_user_agent_missing(self):
        with pytest.raises(BadRequest):
            user_agent(make_request("GET", "/user-agent"))


class TestFileHandler:

    def test_get_existing_file(self, files_dir: Path):
        (files_dir / "hello.txt").write_bytes(b"Hello, World!")
        files = FileHandler(files_dir)

        response = files.get(make_request("GET", "/files/hello.txt", name="hello.txt"))

        assert response.status == 200
        assert response.get_header("Content-Type") == "application/octet-stream"
        assert response.get_header("Content-Length") == "13"
        assert body_of(response) == b"Hello, World!"

    def test_get_empty_file(self, files_dir: Path):
        (files_dir / "empty").write_bytes(b"")
        response = FileHandler(files_dir).get(make_request("GET", "/files/empty", name="empty"))

        assert response.get_header("Content-Length") == "0"
        assert body_of(response) == b""

    def test_get_missing_file(self, files_dir: Path):
        with pytest.raises(NotFound):
            FileHandler(files_dir).get(make_request("GET", "/files/nope", name="nope"))

    def test_get_directory_is_not_found(self, files_dir: Path):
        (files_dir / "sub").mkdir()
        with pytest.raises(NotFound):
            FileHandler(files_dir).get(make_request("GET", "/files/sub", name="sub"))

    def test_get_missing_base_directory(self, tmp_path: Path):
        files = FileHandler(tmp_path / "does-not-exist")
        with pytest.raises(NotFound):
            files.get(make_request("GET", "/files/a", name="a"))

    def test_traversal_refused(self, tmp_path: Path, files_dir: Path):
        (tmp_path / "secret.txt").write_bytes(b"secret")
        files = FileHandler(files_dir)

        with pytest.raises(NotFound):
            files.get(make_request("GET", "/files/../secret.txt", name="../secret.txt"))

    def test_traversal_allowed_without_confinement(self, tmp_path: Path, files_dir: Path):
        (tmp_path / "secret.txt").write_bytes(b"secret")
        files = FileHandler(files_dir, confine=False)

        response = files.get(make_request("GET", "/files/../secret.txt", name="../secret.txt"))
        assert body_of(response) == b"secret"

    def test_post_writes_exact_body(self, files_dir: Path):
        data = bytes(range(256)) * 10
        request = make_request(
            "POST", "/files/out.bin", {"Content-Length": str(len(data))}, data + b"TRAILING", name="out.bin"
        )

        response = FileHandler(files_dir, chunk_size=100).post(request)

        assert response.status == 201
        assert response.headers == []
        assert (files_dir / "out.bin").read_bytes() == data

    def test_post_replaces_existing(self, files_dir: Path):
        (files_dir / "f").write_bytes(b"old contents that are longer")
        request = make_request("POST", "/files/f", {"Content-Length": "3"}, b"new", name="f")

        FileHandler(files_dir).post(request)

        assert (files_dir / "f").read_bytes() == b"new"

    def test_post_missing_content_length_leaves_file_untouched(self, files_dir: Path):
        (files_dir / "f").write_bytes(b"keep me")
        request = make_request("POST", "/files/f", {}, b"new", name="f")

        with pytest.raises(BadRequest):
            FileHandler(files_dir).post(request)

        assert (files_dir / "f").read_bytes() == b"keep me"

    def test_post_invalid_content_length(self, files_dir: Path):
        request = make_request("POST", "/files/f", {"Content-Length": "lots"}, b"x", name="f")
        with pytest.raises(BadRequest):
            FileHandler(files_dir).post(request)
        assert not (files_dir / "f").exists()

    def test_post_short_body(self, files_dir: Path):
        request = make_request("POST", "/files/f", {"Content-Length": "10"}, b"abc", name="f")
        with pytest.raises(BadRequest):
            FileHandler(files_dir).post(request)

    def test_post_into_missing_directory(self, tmp_path: Path):
        request = make_request("POST", "/files/f", {"Content-Length": "1"}, b"x", name="f")

        with pytest.raises(InternalError) as exc_info:
            FileHandler(tmp_path / "missing").post(request)

        assert exc_info.value.message == "opening file for write"


class TestRegisterRoutes:

    @pytest.fixture
    def router(self, files_dir: Path) -> Router:
        return register_routes(Router(), ServerConfig(directory=str(files_dir)))

    def test_round_trip(self, router: Router):
        upload = make_request("POST", "/files/a.txt", {"Content-Length": "5"}, b"hello")
        assert router.handle(upload).status == 201

        download = router.handle(make_request("GET", "/files/a.txt"))
        assert body_of(download) == b"hello"

    def test_echo_route(self, router: Router):
        assert router.handle(make_request("PUT", "/echo/x")).body == b"x"

    def test_files_other_method(self, router: Router):
        with pytest.raises(MethodNotAllowed):
            router.handle(make_request("DELETE", "/files/a.txt"))

    def test_unknown_path(self, router: Router):
        with pytest.raises(NotFound):
            router.handle(make_request("GET", "/nope"))
