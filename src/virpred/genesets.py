"""MSigDB GO:BP gene-set retrieval with local caching.

Downloads the Homo sapiens C5 GO:BP collection (gene symbols) for a
pinned MSigDB release on first use and keeps the GMT file in a local
cache. MSigDB releases do not change once published, so a cached file is
reused as-is. A local GMT file can be used instead of the download.
"""

import logging
import os
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import DEFAULT_CACHE_DIR, DEFAULT_MSIGDB_RELEASE, DEFAULT_TIMEOUT, MSIGDB_GMT_URL
from .errors import ReferenceFetchError

logger = logging.getLogger(__name__)

GeneSetCollection = Dict[str, List[str]]

DOWNLOAD_CHUNK_SIZE = 1 << 16


def create_session(
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    status_forcelist: tuple = (429, 500, 502, 503, 504),
    user_agent: str = "VirPred/0.1",
) -> requests.Session:
    """Create a requests Session that retries rate limits and server errors."""
    session = requests.Session()
    retries = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=status_forcelist,
        allowed_methods=("GET",),
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": user_agent})
    return session


def parse_gmt(text: str) -> GeneSetCollection:
    """Parse GMT text (``name<TAB>description<TAB>gene...``) into a dict."""
    gene_sets: GeneSetCollection = {}
    for line in text.splitlines():
        parts = [p.strip() for p in line.rstrip("\n").split("\t")]
        if len(parts) < 3 or not parts[0]:
            continue
        # dict.fromkeys drops repeated members but keeps file order
        genes = list(dict.fromkeys(g for g in parts[2:] if g))
        if genes:
            gene_sets[parts[0]] = genes
    return gene_sets


def read_gmt(path: Union[str, Path]) -> GeneSetCollection:
    """Read a GMT file from disk.

    Raises:
        ReferenceFetchError: If the file cannot be read or holds no gene sets
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ReferenceFetchError(f"Failed to read gene sets from {path}: {e}") from e

    gene_sets = parse_gmt(text)
    if not gene_sets:
        raise ReferenceFetchError(f"No gene sets found in {path}")
    return gene_sets


class GeneSetProvider:
    """Supplies the GO:BP gene-set collection for a run.

    Args:
        release: MSigDB release, e.g. ``"2024.1.Hs"``.
        cache_dir: Directory for downloaded GMT files. Defaults to
            ``~/.virpred``, overridable via ``VIRPRED_CACHE_DIR``.
        timeout: Wall-clock limit in seconds for the download.
        local_path: GMT file to use instead of downloading.
        session: Optional pre-configured requests session.
    """

    def __init__(
        self,
        release: str = DEFAULT_MSIGDB_RELEASE,
        cache_dir: Optional[Path] = None,
        timeout: int = DEFAULT_TIMEOUT,
        local_path: Optional[Path] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.release = release
        if cache_dir is not None:
            self._cache_dir = Path(cache_dir)
        else:
            env_dir = os.environ.get("VIRPRED_CACHE_DIR")
            self._cache_dir = Path(env_dir) if env_dir else DEFAULT_CACHE_DIR
        self.timeout = timeout
        self.local_path = Path(local_path) if local_path is not None else None
        self._session = session
        self._gene_sets: Optional[GeneSetCollection] = None

    @property
    def url(self) -> str:
        return MSIGDB_GMT_URL.format(release=self.release)

    @property
    def cache_path(self) -> Path:
        return self._cache_dir / f"c5.go.bp.v{self.release}.symbols.gmt"

    def get_gene_sets(self) -> GeneSetCollection:
        """Return the gene-set collection, loading it on first access."""
        if self._gene_sets is None:
            self._gene_sets = self._load()
            logger.info(f"Loaded {len(self._gene_sets)} GO:BP gene sets")
        return self._gene_sets

    # -----------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------

    def _load(self) -> GeneSetCollection:
        if self.local_path is not None:
            logger.info(f"Reading gene sets from {self.local_path}")
            return read_gmt(self.local_path)

        if self.cache_path.exists():
            logger.info(f"Loading MSigDB {self.release} GO:BP gene sets from cache: {self.cache_path}")
            return read_gmt(self.cache_path)

        text = self._download()
        gene_sets = parse_gmt(text)
        if not gene_sets:
            raise ReferenceFetchError(
                f"Failed to retrieve gene sets: {self.url} returned no GO:BP gene sets"
            )
        self._write_cache(text)
        return gene_sets

    def _download(self) -> str:
        logger.info(f"Downloading MSigDB {self.release} GO:BP gene sets from {self.url}")
        session = self._session or create_session()
        deadline = time.monotonic() + self.timeout
        chunks: List[bytes] = []
        response = None
        try:
            response = session.get(self.url, timeout=self.timeout, stream=True)
            response.raise_for_status()
            self._check_deadline(deadline)
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                chunks.append(chunk)
                self._check_deadline(deadline)
        except requests.RequestException as e:
            raise ReferenceFetchError(f"Gene set preparation failed: {e}") from e
        finally:
            if response is not None:
                response.close()
        return b"".join(chunks).decode("utf-8", errors="replace")

    def _check_deadline(self, deadline: float) -> None:
        # The per-request timeout only bounds socket waits; this bounds the whole download
        if time.monotonic() > deadline:
            raise ReferenceFetchError(
                f"Gene set preparation failed: download from {self.url} "
                f"exceeded the {self.timeout}s timeout"
            )

    def _write_cache(self, text: str) -> None:
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.cache_path.with_suffix(".part")
            tmp_path.write_text(text, encoding="utf-8")
            tmp_path.replace(self.cache_path)
            logger.info(f"Cached gene sets to {self.cache_path}")
        except OSError as e:
            logger.warning(f"Could not cache gene sets at {self.cache_path}: {e}")
