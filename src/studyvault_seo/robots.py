"""robots.txt rendering."""

from __future__ import annotations

from dataclasses import dataclass

PUBLIC_PATHS: tuple[str, ...] = ("/browse", "/about", "/contact", "/faq", "/help-center")

PRIVATE_PATHS: tuple[str, ...] = (
    "/admin/",
    "/dashboard/",
    "/api/",
    "/login",
    "/register",
    "/reset-password",
    # Query variations that only reorder or paginate listings
    "/browse?*sort=*",
    "/browse?*page=*",
)

WELCOME_BOTS: tuple[str, ...] = ("Googlebot", "Bingbot")


@dataclass(frozen=True)
class RobotsPolicy:
    sitemap_url: str
    allow: tuple[str, ...] = PUBLIC_PATHS
    disallow: tuple[str, ...] = PRIVATE_PATHS
    bots: tuple[str, ...] = WELCOME_BOTS
    crawl_delay: int | None = 1


def render_robots_txt(policy: RobotsPolicy) -> str:
    lines = ["# StudyVault robots.txt", "User-agent: *", "Allow: /"]
    if policy.crawl_delay is not None:
        lines.append(f"Crawl-delay: {policy.crawl_delay}")
    lines.append("")

    lines.append("# Public content")
    lines.extend(f"Allow: {path}" for path in policy.allow)
    lines.append("")

    lines.append("# Private areas")
    lines.extend(f"Disallow: {path}" for path in policy.disallow)
    lines.append("")

    for bot in policy.bots:
        lines.extend([f"User-agent: {bot}", "Allow: /", ""])

    lines.append(f"Sitemap: {policy.sitemap_url}")
    return "\n".join(lines) + "\n"
