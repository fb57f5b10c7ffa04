"""Pulling images from registries that speak the OCI distribution API."""

from __future__ import annotations

import base64
import shutil
import tempfile
from pathlib import Path

import httpx

from layer_audit.core.image import ContainerImage, FileLayer
from layer_audit.models.image import ImageDigest, ImageManifest, ImageReference, LayerInfo
from layer_audit.registry.base import (
    RegistryAuth,
    RegistryAuthError,
    RegistryError,
    RegistryNotFoundError,
)
from layer_audit.utils.hashing import hash_file
from layer_audit.utils.logging import get_logger

logger = get_logger(__name__)

DOCKER_HUB = "docker.io"

# Hosts whose API endpoint differs from https://<host>
ENDPOINTS = {
    "docker.io": "https://registry-1.docker.io",
    "index.docker.io": "https://registry-1.docker.io",
}


def registry_endpoint(registry: str | None) -> str:
    """Base URL of the distribution API for a registry host."""
    host = registry or DOCKER_HUB
    if host in ENDPOINTS:
        return ENDPOINTS[host]
    if host.startswith(("http://", "https://")):
        return host
    if host == "localhost" or host.startswith(("localhost:", "127.0.0.1")):
        return f"http://{host}"
    return f"https://{host}"


def parse_challenge(header: str) -> tuple[str, dict[str, str]]:
    """Split a ``WWW-Authenticate`` header into its scheme and parameters.

    Example:
        >>> parse_challenge('Bearer realm="https://auth.io/token",service="reg"')
        ('bearer', {'realm': 'https://auth.io/token', 'service': 'reg'})
    """
    scheme, _, rest = header.strip().partition(" ")
    params = {}
    for part in rest.split(","):
        key, sep, value = part.partition("=")
        if sep:
            params[key.strip()] = value.strip().strip('"')
    return scheme.lower(), params


class OCIRegistry:
    """Pulls images over the OCI distribution API.

    Authentication follows the registry's ``WWW-Authenticate`` challenge: a
    bearer token is fetched from the advertised realm (with basic
    credentials when available) and cached per repository, or basic
    credentials are sent directly. Credentials default to the environment
    and then to the Docker ``config.json``.

    Example:
        registry = OCIRegistry()
        with registry.pull("quay.io/ns/app:1.0") as image:
            print(len(image.layers()))
    """

    DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
    DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
    OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
    OCI_INDEX = "application/vnd.oci.image.index.v1+json"

    ACCEPT = ", ".join([OCI_MANIFEST, DOCKER_MANIFEST, OCI_INDEX, DOCKER_MANIFEST_LIST])

    def __init__(
        self,
        auth: RegistryAuth | None = None,
        timeout: float = 300.0,
        max_retries: int = 3,
        docker_config_path: Path | str | None = None,
        platform: tuple[str, str] = ("linux", "amd64"),
    ) -> None:
        """Initialize the client.

        Args:
            auth: Credentials (environment or Docker config if None)
            timeout: Request timeout in seconds
            max_retries: Connection retry attempts of the transport
            docker_config_path: Docker config.json to read credentials from
            platform: (os, architecture) picked from multi-platform indexes
        """
        self._auth = auth
        self._timeout = timeout
        self._max_retries = max_retries
        self._docker_config_path = docker_config_path
        self._platform = platform
        self._tokens: dict[tuple[str, str], str] = {}

    def _get_client(self) -> httpx.Client:
        transport = httpx.HTTPTransport(retries=self._max_retries)
        return httpx.Client(timeout=self._timeout, transport=transport, follow_redirects=True)

    def _credentials(self, ref: ImageReference) -> RegistryAuth | None:
        if self._auth is not None:
            return self._auth
        return RegistryAuth.from_env() or RegistryAuth.from_docker_config(
            ref.registry, self._docker_config_path
        )

    @staticmethod
    def _repository(ref: ImageReference) -> str:
        # official Docker Hub images live under library/
        if (ref.registry or DOCKER_HUB) in ENDPOINTS and "/" not in ref.repository:
            return f"library/{ref.repository}"
        return ref.repository

    def _url(self, ref: ImageReference, kind: str, target: str) -> str:
        return f"{registry_endpoint(ref.registry)}/v2/{self._repository(ref)}/{kind}/{target}"

    def _authorize(
        self, client: httpx.Client, ref: ImageReference, challenge: str
    ) -> dict[str, str] | None:
        """Answer an authentication challenge with request headers, or None."""
        scheme, params = parse_challenge(challenge)
        auth = self._credentials(ref)

        if scheme == "basic":
            if not (auth and auth.username):
                return None
            pair = f"{auth.username}:{auth.password or ''}".encode()
            return {"Authorization": f"Basic {base64.b64encode(pair).decode()}"}
        if scheme != "bearer":
            return None

        key = (registry_endpoint(ref.registry), self._repository(ref))
        if auth and auth.token:
            self._tokens[key] = auth.token
        else:
            realm = params.get("realm")
            if not realm:
                raise RegistryAuthError("No realm in WWW-Authenticate header")
            query = {"scope": params.get("scope") or f"repository:{key[1]}:pull"}
            if params.get("service"):
                query["service"] = params["service"]
            basic = (auth.username, auth.password or "") if auth and auth.username else None

            try:
                response = client.get(realm, params=query, auth=basic)
            except httpx.HTTPError as e:
                raise RegistryError(f"Token request to {realm} failed: {e}", code="NETWORK_ERROR") from e
            if response.status_code in (401, 403):
                raise RegistryAuthError(f"Token request for {ref.repository} was refused")
            if response.status_code != 200:
                raise RegistryError(f"Token request failed: {response.status_code}")
            body = response.json()
            self._tokens[key] = body.get("token") or body.get("access_token", "")

        return {"Authorization": f"Bearer {self._tokens[key]}"}

    def _get(
        self,
        client: httpx.Client,
        ref: ImageReference,
        url: str,
        what: str,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET ``url`` as a stream, answering one auth challenge.

        The caller must close the returned response.
        """
        headers = dict(headers or {})
        token = self._tokens.get((registry_endpoint(ref.registry), self._repository(ref)))
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = client.send(client.build_request("GET", url, headers=headers), stream=True)
            if response.status_code == 401:
                response.close()
                extra = self._authorize(client, ref, response.headers.get("www-authenticate", ""))
                if extra is None:
                    raise RegistryAuthError(f"Authentication required for {what}")
                headers.update(extra)
                response = client.send(client.build_request("GET", url, headers=headers), stream=True)
        except httpx.HTTPError as e:
            raise RegistryError(f"Request to {url} failed: {e}", code="NETWORK_ERROR") from e

        if response.status_code != 200:
            response.close()
            if response.status_code == 404:
                raise RegistryNotFoundError(what)
            if response.status_code in (401, 403):
                raise RegistryAuthError(f"Authentication failed for {what}")
            raise RegistryError(f"Failed to get {what}: {response.status_code}")
        return response

    def _fetch_json(
        self, client: httpx.Client, ref: ImageReference, target: str, what: str
    ) -> tuple[dict, httpx.Headers]:
        response = self._get(client, ref, self._url(ref, "manifests", target), what, {"Accept": self.ACCEPT})
        try:
            response.read()
            return response.json(), response.headers
        except ValueError as e:
            raise RegistryError(f"Invalid manifest for {what}: {e}") from e
        finally:
            response.close()

    def _select_platform(self, index: dict, reference: str) -> str:
        wanted_os, wanted_arch = self._platform
        for entry in index.get("manifests", []):
            platform = entry.get("platform", {})
            if platform.get("os") == wanted_os and platform.get("architecture") == wanted_arch:
                return entry["digest"]
        raise RegistryNotFoundError(f"{reference} for {wanted_os}/{wanted_arch}")

    def _resolve_manifest(self, client: httpx.Client, ref: ImageReference, reference: str) -> ImageManifest:
        data, headers = self._fetch_json(client, ref, ref.manifest_ref, reference)
        media_type = data.get("mediaType") or headers.get("content-type", "")

        if media_type in (self.OCI_INDEX, self.DOCKER_MANIFEST_LIST) or "manifests" in data:
            digest = self._select_platform(data, reference)
            logger.debug("%s resolved to %s for %s", reference, digest, "/".join(self._platform))
            data, headers = self._fetch_json(client, ref, digest, reference)
            media_type = data.get("mediaType") or headers.get("content-type", "")

        config = data.get("config", {}).get("digest")
        reported = headers.get("docker-content-digest")
        return ImageManifest(
            schema_version=data.get("schemaVersion", 2),
            media_type=media_type or self.OCI_MANIFEST,
            digest=ImageDigest.from_string(reported) if reported else None,
            config_digest=ImageDigest.from_string(config) if config else None,
            layers=[
                LayerInfo(
                    digest=ImageDigest.from_string(layer["digest"]),
                    size=layer.get("size", 0),
                    media_type=layer.get("mediaType", ""),
                )
                for layer in data.get("layers", [])
            ],
        )

    def _download(self, client: httpx.Client, ref: ImageReference, layer: LayerInfo, dest: Path) -> None:
        response = self._get(client, ref, self._url(ref, "blobs", str(layer.digest)), f"layer {layer.digest}")
        try:
            with open(dest, "wb") as out:
                for chunk in response.iter_bytes():
                    out.write(chunk)
        except httpx.HTTPError as e:
            raise RegistryError(f"Download of {layer.digest} failed: {e}", code="NETWORK_ERROR") from e
        finally:
            response.close()

        actual = hash_file(dest, layer.digest.algorithm)
        if actual != layer.digest.hash:
            raise RegistryError(
                f"Layer {layer.digest} failed verification (got {layer.digest.algorithm}:{actual})",
                code="DIGEST_MISMATCH",
            )

    @staticmethod
    def _check_media_type(layer: LayerInfo) -> None:
        if "zstd" in layer.media_type:
            raise RegistryError(
                f"Unsupported layer media type {layer.media_type}", code="UNSUPPORTED_MEDIA_TYPE"
            )

    def get_manifest(self, reference: str) -> ImageManifest:
        """Resolve the single-platform manifest of an image.

        Multi-platform indexes are narrowed to the configured platform.

        Raises:
            RegistryNotFoundError: If the image or platform does not exist
            RegistryAuthError: If the registry refuses the credentials
        """
        ref = ImageReference.parse(reference)
        with self._get_client() as client:
            return self._resolve_manifest(client, ref, reference)

    def pull_layer(self, reference: str, layer: LayerInfo, dest: Path) -> None:
        """Download one layer blob to ``dest`` and verify its digest."""
        self._check_media_type(layer)
        ref = ImageReference.parse(reference)
        with self._get_client() as client:
            self._download(client, ref, layer, dest)

    def pull(self, reference: str) -> ContainerImage:
        """Download every layer of an image into a private work directory.

        Layers keep their compressed blob digests.

        Returns:
            ContainerImage owning the downloaded blobs
        """
        ref = ImageReference.parse(reference)
        workdir = Path(tempfile.mkdtemp(prefix="layer-audit-"))
        try:
            with self._get_client() as client:
                manifest = self._resolve_manifest(client, ref, reference)
                for layer in manifest.layers:
                    self._check_media_type(layer)

                layers = []
                for layer in manifest.layers:
                    dest = workdir / layer.digest.hash
                    logger.info("pulling layer %s (%d bytes)", layer.digest, layer.size)
                    self._download(client, ref, layer, dest)
                    layers.append(FileLayer(dest, str(layer.digest)))
        except BaseException:
            shutil.rmtree(workdir, ignore_errors=True)
            raise

        return ContainerImage(reference, layers, workdir=workdir)
