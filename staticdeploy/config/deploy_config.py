import os
import re
import yaml
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from urllib.parse import urlparse

from ..core.errors import ConfigError


DEFAULT_ROBOTS_TXT = "User-Agent: *\nSitemap: {{production_url}}/sitemap.xml"

TOKEN_ENV_VAR = "STATICDEPLOY_GITHUB_TOKEN"
DB_PASSWORD_ENV_VAR = "STATICDEPLOY_DB_PASSWORD"


def _domain_of(url: str) -> str:
    return urlparse(url).netloc if url else ""


@dataclass
class SiteConfig:
    """Source and production site addresses"""
    source_url: str = ""
    production_url: str = ""
    exclude_domains: List[str] = field(default_factory=list)
    allowed_domains: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.source_url = (self.source_url or "").rstrip('/')
        self.production_url = (self.production_url or "").rstrip('/')

    @property
    def source_domain(self) -> str:
        return _domain_of(self.source_url)

    @property
    def production_domain(self) -> str:
        return _domain_of(self.production_url)


@dataclass
class StorageConfig:
    """Working directory layout"""
    working_dir: str = "./data/staticdeploy"
    max_log_bytes: int = 5 * 1024 * 1024


@dataclass
class DatabaseConfig:
    """Content database connection (WordPress schema)"""
    host: str = "localhost"
    port: int = 3306
    user: str = ""
    password: str = ""
    database: str = ""
    table_prefix: str = "wp_"
    min_connections: int = 1
    max_connections: int = 2


@dataclass
class DetectionConfig:
    """Change detection settings"""
    content_kinds: List[str] = field(default_factory=lambda: ["post", "page"])
    page_size: int = 100
    rest_endpoints: Dict[str, str] = field(default_factory=lambda: {"post": "posts", "page": "pages"})
    resolve_to_loopback: bool = True
    permalink_structure: str = "/%year%/%monthnum%/%day%/%postname%/"
    category_base: str = "category"
    database: Optional[DatabaseConfig] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DetectionConfig':
        data = dict(data)
        db_data = data.pop('database', None)
        database = DatabaseConfig(**db_data) if db_data else None
        return cls(database=database, **data)


@dataclass
class BuildConfig:
    """Build planning settings"""
    selective_threshold: int = 100


@dataclass
class CrawlConfig:
    """Mirror tool settings"""
    wget_binary: str = "wget"
    extra_args: List[str] = field(default_factory=lambda: ["--no-check-certificate"])
    tolerated_exit_codes: List[int] = field(default_factory=lambda: [0, 8])
    reject_patterns: List[str] = field(default_factory=lambda: ["/category/"])
    cache_clean_pages: List[str] = field(default_factory=lambda: [
        "index.html",
        "about/index.html",
        "archives/index.html",
        "contact/index.html",
    ])
    extra_files: List[str] = field(default_factory=lambda: ["sitemap.xml", "404.html"])


@dataclass
class PublishTreeConfig:
    """Post-processing of the published tree"""
    robots_txt: str = DEFAULT_ROBOTS_TXT
    readme_content: str = ""
    preserved_files: List[str] = field(default_factory=lambda: ["README.md", "CNAME", ".gitignore"])
    legacy_directories: List[str] = field(default_factory=lambda: ["category"])


@dataclass
class GitConfig:
    """Version control settings"""
    binary: str = "git"
    remote: str = "origin"
    staging_branch: str = "staging"
    production_branch: str = "master"
    summary_max_entries: int = 20


@dataclass
class GitHubConfig:
    """Hosting API settings"""
    repo: str = ""  # owner/name
    token: str = ""
    api_base: str = "https://api.github.com"
    auto_merge_label: str = "auto-merge"
    timeout: float = 30.0

    @property
    def owner(self) -> str:
        return self.repo.split('/', 1)[0] if self.repo else ""


@dataclass
class HttpConfig:
    """HTTP client configuration"""
    timeout: float = 30.0


@dataclass
class DeployConfig:
    """Complete configuration of a deploy installation"""
    site: SiteConfig
    storage: StorageConfig
    detection: DetectionConfig
    build: BuildConfig
    crawl: CrawlConfig
    publish_tree: PublishTreeConfig
    git: GitConfig
    github: GitHubConfig
    http: HttpConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeployConfig':
        """Create DeployConfig from dictionary"""
        try:
            config = cls(
                site=SiteConfig(**data.get('site', {})),
                storage=StorageConfig(**data.get('storage', {})),
                detection=DetectionConfig.from_dict(data.get('detection', {})),
                build=BuildConfig(**data.get('build', {})),
                crawl=CrawlConfig(**data.get('crawl', {})),
                publish_tree=PublishTreeConfig(**data.get('publish_tree', {})),
                git=GitConfig(**data.get('git', {})),
                github=GitHubConfig(**data.get('github', {})),
                http=HttpConfig(**data.get('http', {})),
            )
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
        config.apply_env_overrides()
        return config

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'DeployConfig':
        """Load DeployConfig from YAML file"""
        path = Path(yaml_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {yaml_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"Config file {yaml_path} must contain a mapping")
        return cls.from_dict(data or {})

    @classmethod
    def default(cls) -> 'DeployConfig':
        """Return default configuration"""
        config = cls(
            site=SiteConfig(),
            storage=StorageConfig(),
            detection=DetectionConfig(),
            build=BuildConfig(),
            crawl=CrawlConfig(),
            publish_tree=PublishTreeConfig(),
            git=GitConfig(),
            github=GitHubConfig(),
            http=HttpConfig(),
        )
        config.apply_env_overrides()
        return config

    def apply_env_overrides(self) -> None:
        """Secrets from the environment win over file values"""
        token = os.environ.get(TOKEN_ENV_VAR)
        if token:
            self.github.token = token
        password = os.environ.get(DB_PASSWORD_ENV_VAR)
        if password and self.detection.database is not None:
            self.detection.database.password = password

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty when valid)"""
        issues = []
        if not self.site.source_url:
            issues.append("site.source_url is not set")
        elif not self.site.source_domain:
            issues.append(f"site.source_url is not an absolute URL: {self.site.source_url}")
        if not self.site.production_url:
            issues.append("site.production_url is not set")
        elif not self.site.production_domain:
            issues.append(f"site.production_url is not an absolute URL: {self.site.production_url}")
        if self.github.repo and not re.match(r'^[\w.-]+/[\w.-]+$', self.github.repo):
            issues.append(f"github.repo must look like owner/name: {self.github.repo}")
        if self.build.selective_threshold < 1:
            issues.append("build.selective_threshold must be positive")
        if self.detection.page_size < 1:
            issues.append("detection.page_size must be positive")
        return issues

    # Working directory layout

    @property
    def working_dir(self) -> Path:
        return Path(self.storage.working_dir)

    @property
    def build_dir(self) -> Path:
        return self.working_dir / "build"

    @property
    def repo_dir(self) -> Path:
        return self.working_dir / "repo"

    @property
    def logs_dir(self) -> Path:
        return self.working_dir / "logs"

    @property
    def lock_path(self) -> Path:
        return self.working_dir / ".lock"

    @property
    def watermark_path(self) -> Path:
        return self.working_dir / ".last-build-time"

    @property
    def result_path(self) -> Path:
        return self.working_dir / ".last-result.json"

    @property
    def wget_input_path(self) -> Path:
        return self.working_dir / "wget-input.txt"


def load_deploy_config(config_path: Optional[str] = None) -> DeployConfig:
    """
    Load deploy configuration from YAML file.
    If no path provided, looks for staticdeploy.yaml in standard locations.
    """
    if config_path:
        return DeployConfig.from_yaml(config_path)

    search_paths = [
        Path("./staticdeploy.yaml"),
        Path("./config/staticdeploy.yaml"),
        Path("/etc/staticdeploy/staticdeploy.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return DeployConfig.from_yaml(str(path))

    return DeployConfig.default()
