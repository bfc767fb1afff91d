"""Main quart application"""

import logging
from datetime import timedelta
from typing import Optional
import sentry_sdk
from quart import Blueprint, Quart, current_app, jsonify, render_template
from quart_schema import (
    QuartSchema,
    Info,
    hide,
    validate_querystring,
    RequestSchemaValidationError,
)
from quart_rate_limiter import RateLimiter, rate_limit

from blog.config import Config
from blog.generation import (
    LISTING_PATH,
    PageCache,
    build_detail,
    build_listing,
    post_path,
    prebuild,
)
from blog.pages import DetailState, ListingPage
from blog.prismic import (
    ContentClient,
    InvalidContinuation,
    MalformedContent,
    NotFound,
    RepositoryUnavailable,
)
from blog.schema import MoreQuery

logger = logging.getLogger(__name__)
version = "0.1.0"

sentry_sdk.init(dsn=Config.SENTRY_DSN)

views = Blueprint("pages", __name__)


def content_client() -> ContentClient:
    return current_app.extensions["content_client"]


def page_cache() -> PageCache:
    return current_app.extensions["page_cache"]


def create_app(client: Optional[ContentClient] = None) -> Quart:
    """Create the app. The content client is built from the config unless given."""
    app = Quart(__name__, static_folder="static", static_url_path="/static")
    app.config.from_object(Config)
    app.config.from_prefixed_env()
    QuartSchema(app, info=Info(title="Blog Ignite", version=version))
    RateLimiter(app)
    app.extensions["page_cache"] = PageCache(
        float(app.config["REVALIDATE_SECONDS"]),
        max_entries=int(app.config["MAX_CACHED_PAGES"]),
        revalidate_missing=float(app.config["NOT_FOUND_REVALIDATE_SECONDS"]),
    )
    if client is not None:
        app.extensions["content_client"] = client
    app.register_blueprint(views)

    @app.before_serving
    async def startup():
        if "content_client" not in app.extensions:
            app.extensions["content_client"] = ContentClient.from_config(app.config)
        if app.config["PREBUILD"]:
            await prebuild(
                app.extensions["page_cache"],
                app.extensions["content_client"],
                app.config,
            )

    @app.after_serving
    async def shutdown():
        await app.extensions["page_cache"].close()
        if "content_client" in app.extensions:
            await app.extensions["content_client"].close()

    return app


async def serve_cached(path: str, build):
    """Cached page for path, regenerating it when missing or stale.

    Returns None while a missing page is being generated."""
    cache = page_cache()
    entry = cache.get(path)
    if entry is None:
        failure = cache.pop_failure(path)
        if failure is not None:
            raise failure
        cache.regenerate(path, build)
        return None
    if cache.is_stale(entry):
        cache.regenerate(path, build)
    return entry.page


@views.route("/")
async def index():
    """Listing page."""
    client = content_client()
    config = current_app.config
    page = await serve_cached(LISTING_PATH, lambda: build_listing(client, config))
    if page is None:
        # the listing is needed on the first request, not generated in the background
        failure = await page_cache().join(LISTING_PATH)
        if failure is not None:
            page_cache().pop_failure(LISTING_PATH)
            raise failure
        entry = page_cache().get(LISTING_PATH)
        if entry is None:
            raise RepositoryUnavailable("Listing page was not generated")
        page = entry.page
    return await render_template("index.html", page=page)


@views.route("/post/<slug>")
async def post(slug: str):
    """Post page, generated on first request when it was not prebuilt."""
    client = content_client()
    config = current_app.config
    page = await serve_cached(post_path(slug), lambda: build_detail(client, slug, config))
    if page is None:
        return await render_template("fallback.html"), 200
    if page.state == DetailState.NOT_FOUND:
        return await render_template("not_found.html"), 404
    return await render_template("post.html", view=page.view)


@views.route("/posts")
@rate_limit(15, timedelta(seconds=60))
@validate_querystring(MoreQuery)
async def more_posts(query_args: MoreQuery):
    """Next page of posts for the load more button."""
    config = current_app.config
    page = ListingPage.resume(
        content_client(),
        query_args.next_page,
        page_size=int(config["POSTS_PAGE_SIZE"]),
        dedupe=bool(config["DEDUPE_POSTS"]),
        lc=config["DATE_LOCALE"],
        tz=config["DATE_TIMEZONE"],
    )
    try:
        appended = await page.handle_load_more()
    except RepositoryUnavailable as e:
        logger.warning(f"Loading more posts failed: {e}")
        return {"error": "Content repository unavailable."}, 503
    except MalformedContent as e:
        logger.error(f"Malformed content: {e}")
        return {"error": "Malformed content."}, 502
    html = await render_template("_posts.html", posts=appended)
    return jsonify(
        {
            "next_page": page.next_page,
            "html": html,
            "results": [
                {
                    "uid": listed.post.uid,
                    "title": listed.post.title,
                    "subtitle": listed.post.subtitle,
                    "author": listed.post.author,
                    "first_publication_date": listed.post.first_publication_date.isoformat()
                    if listed.post.first_publication_date
                    else None,
                    "formatted_date": listed.formatted_date,
                }
                for listed in appended
            ],
        }
    )


@views.route("/heartbeat")
@hide
async def heartbeat():
    """Heartbeat."""
    return "OK", 200


@views.app_errorhandler(RequestSchemaValidationError)
async def handle_request_validation_error(error):
    return {"error": "VALIDATION"}, 400


@views.app_errorhandler(InvalidContinuation)
async def handle_invalid_continuation(error):
    logger.warning(error)
    return {"error": "Invalid continuation token."}, 400


@views.app_errorhandler(NotFound)
async def handle_not_found(error):
    return await render_template("not_found.html"), 404


@views.app_errorhandler(RepositoryUnavailable)
async def handle_repository_unavailable(error):
    logger.warning(f"Content repository unavailable: {error}")
    return await render_template("error.html", message="Conteúdo indisponível."), 503


@views.app_errorhandler(MalformedContent)
async def handle_malformed_content(error):
    logger.error(f"Malformed content: {error}")
    sentry_sdk.capture_exception(error)
    return await render_template("error.html", message="Conteúdo inválido."), 502


app = create_app()


def run() -> None:
    """Run the app."""
    app.run()
