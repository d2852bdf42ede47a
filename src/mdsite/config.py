"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from mdsite.errors import ConfigError


CONFIG_FILE = "config.yaml"


class Settings(BaseModel):
    app_name:      str = "mdsite"
    site_title:    str = Field(default="",    description="Exposed to templates as site.title")
    site_url:      str = Field(default="",    description="Absolute base URL, used for feed, sitemap and canonical URLs")
    output_dir:    str = Field(default="_site", description="Directory the rendered site is written to")
    layouts_dir:   str = Field(default="_layouts",  description="Layout directory, relative to the source root")
    includes_dir:  str = Field(default="_includes", description="Include directory, relative to the source root")
    parser_config: str = Field(default="gfm-like",  description="MarkdownIt parser preset name")
    url_style:     str = Field(default="pretty", pattern="^(pretty|plain)$", description="pretty: dir/index.html, plain: name.html")
    permalink_pattern: str = Field(default="/{year}/{month}/{day}/{slug}/", description="Route for dated documents")
    date_format:   str = Field(default="%b %d, %Y", description="strftime format for page.date")
    tag_dir:       str = Field(default="tags",     description="URL prefix of tag listing pages")
    archive_path:  str = Field(default="/archive/", description="URL of the global chronological index")
    listing_layout: str = Field(default="default", description="Layout used for generated listing pages")
    related_posts: int = Field(default=3,  ge=0, description="Max related posts per page; 0 disables")
    feed_limit:    int = Field(default=20, ge=0, description="Max entries in feed.xml; 0 disables the feed")
    sitemap:       bool = True
    workers:       int = Field(default=4,  ge=1, description="Render threads; 1 renders inline")
    clean:         bool = Field(default=True, description="Remove the output directory before writing")


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then MDSITE_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid {CONFIG_FILE}: expected a mapping")

    for name in Settings.model_fields:
        if val := os.getenv(f"MDSITE_{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e
