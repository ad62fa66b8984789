"""Human-facing index page listing every redirect."""
import os
from html.parser import HTMLParser
from typing import Iterable, List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from redirects import RedirectEntry, domain_to_ascii

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")
LINK_CLASS = "redirect-link"

_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
    keep_trailing_newline=True,
)


def link_label(short: str, domain: str, url: str) -> str:
    return f"{short}.{domain} → {url}"


def render_index(entries: Iterable[RedirectEntry], domain: str,
                 commit_hash: Optional[str] = None, commit_url: Optional[str] = None) -> str:
    """Render the index page with one link per redirect, sorted by short."""
    domain = domain_to_ascii(domain)
    links = [
        {
            "short": entry.short,
            "url": entry.url,
            "label": link_label(entry.short, domain, entry.url),
        }
        for entry in sorted(entries, key=lambda e: e.short)
    ]
    template = _env.get_template("index.html")
    return template.render(
        domain=domain,
        links=links,
        link_class=LINK_CLASS,
        commit_hash=commit_hash,
        commit_url=commit_url,
    )


class _LinkCollector(HTMLParser):

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.links: List[Tuple[str, str]] = []
        self._href = None
        self._text = []

    def handle_starttag(self, tag, attrs):
        if tag != "a":
            return
        attrs = dict(attrs)
        if LINK_CLASS in (attrs.get("class") or "").split():
            self._href = attrs.get("href")
            self._text = []

    def handle_data(self, data):
        if self._href is not None:
            self._text.append(data)

    def handle_endtag(self, tag):
        if tag == "a" and self._href is not None:
            self.links.append((self._href, "".join(self._text).strip()))
            self._href = None


def parse_index_links(html: str) -> List[RedirectEntry]:
    """Recover the redirect entries from a rendered index page."""
    collector = _LinkCollector()
    collector.feed(html)
    collector.close()

    entries = []
    for href, label in collector.links:
        host = label.split(" → ", 1)[0]
        short = host.split(".", 1)[0]
        entries.append(RedirectEntry(short=short, url=href))
    return entries
