"""Route handlers for web UI."""

from kesslerlog.web.routes import games, home, reviews, runs, settings, stats

__all__ = ["games", "home", "reviews", "runs", "settings", "stats"]
