"""Unit tests for registry image sources."""

import base64
import gzip
import hashlib
import json
import sys

import httpx
import pytest

from layer_audit.core.changes import generate_changes
from layer_audit.registry.base import RegistryAuth, RegistryAuthError, RegistryError, RegistryNotFoundError
from layer_audit.registry.docker import DockerRegistry
from layer_audit.models.image import ImageDigest, ImageReference, LayerInfo
from layer_audit.registry.oci import OCIRegistry, parse_challenge, registry_endpoint


def sha256(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


class TestRegistryAuth:
    """Tests for RegistryAuth."""

    def test_from_env_token(self, monkeypatch):
        """Test token auth from the environment."""
        monkeypatch.setenv("REGISTRY_TOKEN", "secret")
        auth = RegistryAuth.from_env()
        assert auth.token == "secret"

    def test_from_env_basic(self, monkeypatch):
        """Test username and password from the environment."""
        monkeypatch.delenv("REGISTRY_TOKEN", raising=False)
        monkeypatch.setenv("REGISTRY_USERNAME", "user")
        monkeypatch.setenv("REGISTRY_PASSWORD", "pass")
        auth = RegistryAuth.from_env()
        assert (auth.username, auth.password) == ("user", "pass")

    def test_from_env_none(self, monkeypatch):
        """Test no credentials in the environment."""
        for name in ("REGISTRY_TOKEN", "REGISTRY_USERNAME", "REGISTRY_PASSWORD"):
            monkeypatch.delenv(name, raising=False)
        assert RegistryAuth.from_env() is None

    def test_from_docker_config(self, tmp_path):
        """Test credentials stored as base64 auth in config.json."""
        config = tmp_path / "config.json"
        encoded = base64.b64encode(b"robot:p:ss").decode()
        config.write_text(json.dumps({"auths": {"quay.io": {"auth": encoded}}}))

        auth = RegistryAuth.from_docker_config("quay.io", config)
        assert auth.username == "robot"
        assert auth.password == "p:ss"

    def test_from_docker_config_docker_hub(self, tmp_path):
        """Test Docker Hub credentials under the legacy index key."""
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"auths": {"https://index.docker.io/v1/": {"identitytoken": "tok"}}}))
        assert RegistryAuth.from_docker_config(None, config).token == "tok"

    def test_from_docker_config_missing(self, tmp_path):
        """Test a missing config file or registry entry."""
        assert RegistryAuth.from_docker_config("quay.io", tmp_path / "none.json") is None
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"auths": {}}))
        assert RegistryAuth.from_docker_config("quay.io", config) is None

    def test_from_docker_config_invalid(self, tmp_path):
        """Test an unparsable config file."""
        config = tmp_path / "config.json"
        config.write_text("{not json")
        with pytest.raises(RegistryError) as exc_info:
            RegistryAuth.from_docker_config("quay.io", config)
        assert exc_info.value.code == "CONFIG_ERROR"


class TestImageReference:
    """Tests for ImageReference.parse."""

    def test_simple(self):
        """Test a bare repository with a tag."""
        ref = ImageReference.parse("ubi9:latest")
        assert ref == ImageReference(registry=None, repository="ubi9", tag="latest")
        assert ref.manifest_ref == "latest"

    def test_registry_and_digest(self):
        """Test a registry host and a digest."""
        ref = ImageReference.parse("quay.io/ns/app@sha256:abc")
        assert ref.registry == "quay.io"
        assert ref.repository == "ns/app"
        assert ref.manifest_ref == "sha256:abc"

    def test_registry_with_port(self):
        """Test a registry with a port is not mistaken for a tag."""
        ref = ImageReference.parse("localhost:5000/app:1.0")
        assert ref.registry == "localhost:5000"
        assert ref.repository == "app"
        assert ref.tag == "1.0"

    def test_namespace_without_registry(self):
        """Test a plain namespace is not taken for a registry host."""
        ref = ImageReference.parse("library/nginx")
        assert ref.registry is None
        assert ref.repository == "library/nginx"
        assert ref.manifest_ref == "latest"


class TestRegistryHelpers:
    """Tests for endpoint and challenge helpers."""

    def test_registry_endpoint(self):
        """Test registry hostnames map to base URLs."""
        assert registry_endpoint(None) == "https://registry-1.docker.io"
        assert registry_endpoint("localhost:5000") == "http://localhost:5000"
        assert registry_endpoint("registry.example.com") == "https://registry.example.com"

    def test_parse_challenge(self):
        """Test a bearer challenge is split into its parameters."""
        scheme, params = parse_challenge(
            'Bearer realm="https://auth.example.com/token",service="registry.example.com",scope="repository:ns/app:pull"'
        )
        assert scheme == "bearer"
        assert params == {
            "realm": "https://auth.example.com/token",
            "service": "registry.example.com",
            "scope": "repository:ns/app:pull",
        }

    def test_docker_hub_library_prefix(self):
        """Test official Docker Hub images are addressed under library/."""
        url = OCIRegistry()._url(ImageReference.parse("nginx:1.25"), "manifests", "1.25")
        assert url == "https://registry-1.docker.io/v2/library/nginx/manifests/1.25"


class FakeRegistry:
    """An in-memory registry speaking the distribution API with bearer auth."""

    def __init__(self, layers, index=False, corrupt=False):
        self.layers = layers
        self.index = index
        self.corrupt = corrupt
        self.token_requests = 0
        self.manifest = json.dumps(
            {
                "schemaVersion": 2,
                "mediaType": OCIRegistry.OCI_MANIFEST,
                "config": {"digest": sha256(b"{}"), "size": 2},
                "layers": [
                    {"digest": sha256(blob), "size": len(blob), "mediaType": "application/vnd.oci.image.layer.v1.tar+gzip"}
                    for blob in layers
                ],
            }
        ).encode()

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "auth.example.com":
            self.token_requests += 1
            return httpx.Response(200, json={"token": "t0k3n"})

        if request.headers.get("authorization") != "Bearer t0k3n":
            return httpx.Response(
                401,
                headers={"www-authenticate": 'Bearer realm="https://auth.example.com/token",service="registry.example.com"'},
            )

        path = request.url.path
        if path.endswith("/manifests/1.0") and self.index:
            body = {
                "schemaVersion": 2,
                "mediaType": OCIRegistry.OCI_INDEX,
                "manifests": [
                    {"digest": "sha256:arm", "platform": {"os": "linux", "architecture": "arm64"}},
                    {"digest": sha256(self.manifest), "platform": {"os": "linux", "architecture": "amd64"}},
                ],
            }
            return httpx.Response(200, json=body)
        if path.endswith("/manifests/1.0") or path.endswith(f"/manifests/{sha256(self.manifest)}"):
            return httpx.Response(
                200,
                content=self.manifest,
                headers={"content-type": OCIRegistry.OCI_MANIFEST, "docker-content-digest": sha256(self.manifest)},
            )
        for blob in self.layers:
            if path.endswith(f"/blobs/{sha256(blob)}"):
                return httpx.Response(200, content=b"tampered" if self.corrupt else blob)
        return httpx.Response(404)


@pytest.fixture
def fake_client(monkeypatch):
    """Route OCIRegistry traffic to a FakeRegistry."""

    def _install(fake):
        monkeypatch.setattr(
            OCIRegistry,
            "_get_client",
            lambda self: httpx.Client(transport=httpx.MockTransport(fake.handler)),
        )
        return fake

    return _install


class TestOCIRegistry:
    """Tests for pulling from an OCI registry."""

    def test_pull(self, fake_client, make_tar):
        """Test manifest resolution, token auth and layer download."""
        blobs = [gzip.compress(make_tar([("file", "usr/bin/ls", b"a")])), gzip.compress(make_tar([]))]
        fake = fake_client(FakeRegistry(blobs))

        registry = OCIRegistry(auth=RegistryAuth(username="u", password="p"))
        with registry.pull("registry.example.com/ns/app:1.0") as image:
            layers = image.layers()
            assert [layer.digest for layer in layers] == [sha256(b) for b in blobs]
            assert generate_changes(layers[0]).paths == ["usr/bin/ls"]
            workdir = layers[0].path.parent
        assert not workdir.exists()
        assert fake.token_requests == 1

    def test_index_selects_platform(self, fake_client, make_tar):
        """Test a multi-platform index resolves to the configured platform."""
        blobs = [gzip.compress(make_tar([]))]
        fake_client(FakeRegistry(blobs, index=True))

        manifest = OCIRegistry(auth=RegistryAuth(username="u", password="p")).get_manifest(
            "registry.example.com/ns/app:1.0"
        )
        assert [str(layer.digest) for layer in manifest.layers] == [sha256(blobs[0])]

    def test_digest_mismatch(self, fake_client, make_tar):
        """Test a blob that does not match its digest is rejected."""
        fake_client(FakeRegistry([gzip.compress(make_tar([]))], corrupt=True))

        with pytest.raises(RegistryError) as exc_info:
            OCIRegistry(auth=RegistryAuth(username="u", password="p")).pull("registry.example.com/ns/app:1.0")
        assert exc_info.value.code == "DIGEST_MISMATCH"

    def test_not_found(self, fake_client):
        """Test an unknown tag."""
        fake_client(FakeRegistry([]))
        with pytest.raises(RegistryNotFoundError):
            OCIRegistry(auth=RegistryAuth(token="t0k3n")).get_manifest("registry.example.com/ns/app:2.0")

    def test_zstd_unsupported(self):
        """Test zstd layers are refused before download."""
        layer = LayerInfo(
            digest=ImageDigest(hash="abc"), size=1, media_type="application/vnd.oci.image.layer.v1.tar+zstd"
        )
        with pytest.raises(RegistryError) as exc_info:
            OCIRegistry().pull_layer("quay.io/ns/app:1.0", layer, None)
        assert exc_info.value.code == "UNSUPPORTED_MEDIA_TYPE"

    def test_token_refused(self, fake_client, monkeypatch):
        """Test a token endpoint rejecting the credentials."""
        fake = fake_client(FakeRegistry([]))
        monkeypatch.setattr(
            fake, "handler", lambda request: httpx.Response(401, headers={
                "www-authenticate": 'Bearer realm="https://auth.example.com/token"'
            })
        )
        with pytest.raises(RegistryAuthError):
            OCIRegistry(auth=RegistryAuth(username="u", password="bad")).get_manifest(
                "registry.example.com/ns/app:1.0"
            )


class TestDockerRegistry:
    """Tests for the local Docker daemon source."""

    def test_missing_sdk(self, monkeypatch):
        """Test a friendly error when the Docker SDK is not installed."""
        monkeypatch.setitem(sys.modules, "docker", None)
        with pytest.raises(RegistryError) as exc_info:
            DockerRegistry().image_exists("ubi9")
        assert exc_info.value.code == "MISSING_DEPENDENCY"

    def test_export_pulls_missing_image(self, monkeypatch, write_image_archive, make_tar):
        """Test a missing image is pulled by the daemon and exported as an archive."""
        from types import SimpleNamespace

        import layer_audit.registry.docker as docker_source

        class ImageNotFound(Exception):
            pass

        archive = write_image_archive([make_tar([("file", "usr/bin/ls", b"a")])])
        pulled = []

        class Images:
            def get(self, reference):
                if not pulled:
                    raise ImageNotFound(reference)
                return SimpleNamespace(save=lambda named: iter([archive.read_bytes()]))

            def pull(self, reference, auth_config=None):
                pulled.append((reference, auth_config))

        errors = SimpleNamespace(
            ImageNotFound=ImageNotFound, NotFound=ImageNotFound, APIError=RuntimeError, DockerException=RuntimeError
        )
        fake_sdk = SimpleNamespace(errors=errors, from_env=lambda: SimpleNamespace(images=Images()))
        monkeypatch.setattr(docker_source, "_sdk", lambda: fake_sdk)

        source = DockerRegistry(auth=RegistryAuth(username="u", password="p"))
        with source.pull("example.com/app:1.0") as image:
            assert len(image) == 1
            assert generate_changes(image.layers()[0]).paths == ["usr/bin/ls"]
        assert pulled == [("example.com/app:1.0", {"username": "u", "password": "p"})]
