import os
import logging
import tempfile
from flask import Flask, render_template, request, redirect, url_for
import requests

from redirects import InitializationError, NotFoundError, RedirectError
from redirect_store import redirect_store
from redirect_handler import CACHE_CONTROL, NotFound, handle, short_from_host
from index_renderer import render_index
from github_webhook import PushEvent, WebhookError, verify_signature
from link_checker import make_table_validator

# Configure logging
logging.basicConfig(level=logging.INFO)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
REDIRECTS_FILENAME = 'redirects.toml'
RESERVED_LABELS = {'www'}
FETCH_TIMEOUT = 10


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# Create the Flask app
app = Flask(__name__)

app.config['REDIRECTS_FILE'] = os.environ.get('REDIRECTS_FILE', os.path.join(BASE_DIR, REDIRECTS_FILENAME))
app.config['REDIRECTS_SOURCE_URL'] = os.environ.get('REDIRECTS_SOURCE_URL')
app.config['REDIRECT_DOMAIN'] = os.environ.get('REDIRECT_DOMAIN', 'rustref.com')
app.config['GITHUB_SECRET'] = os.environ.get('GITHUB_SECRET')
app.config['GITHUB_BRANCH'] = os.environ.get('GITHUB_BRANCH', 'refs/heads/master')
app.config['CHECK_LINKS_ON_RELOAD'] = _env_flag('CHECK_LINKS_ON_RELOAD', False)
app.config['PERSIST_RELOADED_REDIRECTS'] = _env_flag('PERSIST_RELOADED_REDIRECTS', True)

# HTTP client used for remote reloads and link checks; tests swap it out
app.config['HTTP_CLIENT'] = requests.get


def fetch_redirects_text():
    """Return the latest redirects configuration text."""
    source_url = app.config['REDIRECTS_SOURCE_URL']
    if not source_url:
        with open(app.config['REDIRECTS_FILE'], encoding='utf-8') as f:
            return f.read()

    http_client = app.config['HTTP_CLIENT']
    response = http_client(source_url, timeout=FETCH_TIMEOUT)
    response.raise_for_status()
    return response.text


def persist_redirects_text(text):
    """Write fetched configuration over the local file so restarts pick it up."""
    path = app.config['REDIRECTS_FILE']
    fd, tmp_path = tempfile.mkstemp(prefix='.redirects-', suffix='.tmp',
                                    dir=os.path.dirname(os.path.abspath(path)))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    logging.info(f"Saved reloaded redirects to {path}")


def reload_redirects(commit_hash=None, commit_url=None):
    """Fetch the latest configuration and publish it as the serving table."""
    source = app.config['REDIRECTS_SOURCE_URL'] or app.config['REDIRECTS_FILE']

    validate = None
    if app.config['CHECK_LINKS_ON_RELOAD']:
        validate = make_table_validator(http_client=app.config['HTTP_CLIENT'])

    on_publish = None
    if app.config['REDIRECTS_SOURCE_URL'] and app.config['PERSIST_RELOADED_REDIRECTS']:
        def on_publish(text):
            try:
                persist_redirects_text(text)
            except OSError as e:
                logging.warning(f"Could not save reloaded redirects: {e}")

    # on_publish runs under the store writer lock
    return redirect_store.reload(fetch_redirects_text, source, commit_hash=commit_hash,
                                 commit_url=commit_url, validate=validate, on_publish=on_publish)


def load_initial_redirects():
    """Load the redirects file; on failure the service stays unloaded."""
    try:
        redirect_store.load_file(app.config['REDIRECTS_FILE'])
    except RedirectError:
        logging.error("No redirect table loaded; redirect lookups will fail until a reload succeeds")


def redirect_response(short, path=''):
    query = request.query_string.decode('utf-8', 'replace')
    result = handle(redirect_store.table, short, path, query)
    if isinstance(result, NotFound):
        raise NotFoundError(result.short)
    logging.debug(f"Redirecting {short} -> {result.url}")
    response = redirect(result.url, code=result.status)
    response.headers['Cache-Control'] = CACHE_CONTROL
    return response


@app.before_request
def redirect_subdomain():
    """Serve <short>.<domain> requests directly from the Host header."""
    if request.method not in ('GET', 'HEAD'):
        return None
    short = short_from_host(request.host, app.config['REDIRECT_DOMAIN'])
    if short is None or short in RESERVED_LABELS:
        return None
    return redirect_response(short, request.path)


@app.route('/')
def index():
    """List all current redirects in alphabetic order."""
    snapshot = redirect_store.snapshot
    return render_index(snapshot.table, app.config['REDIRECT_DOMAIN'],
                        commit_hash=snapshot.commit_hash, commit_url=snapshot.commit_url)


@app.route('/redirect/<short>', defaults={'rest': ''}, strict_slashes=False)
@app.route('/redirect/<short>/<path:rest>')
def redirect_short(short, rest):
    """Redirect a short label to its page via 302, preserving any trailing path.

    Example: ex.rustref.com/primitives.html =>
        https://doc.rust-lang.org/stable/rust-by-example/primitives.html
    """
    return redirect_response(short, rest)


@app.route('/github/webhook', methods=['POST'])
def github_webhook():
    """Reload the redirect table when redirects.toml changes on the tracked branch."""
    secret = app.config['GITHUB_SECRET']
    if not secret:
        return 'Webhook secret not configured\n', 503
    if not request.is_json:
        return 'Expected a JSON payload\n', 400

    try:
        if not verify_signature(secret, request.get_data(), request.headers):
            logging.warning("Rejected webhook delivery with a bad signature")
            return 'Signature mismatch\n', 403
        if request.headers.get('X-GitHub-Event') == 'ping':
            return 'pong\n'
        event = PushEvent.from_json(request.get_json(silent=True))
    except WebhookError as e:
        return f'{e}\n', 400

    if event.ref != app.config['GITHUB_BRANCH']:
        logging.info(f"Ignoring push to {event.ref}")
        return f'Event not on {app.config["GITHUB_BRANCH"]}, ignoring\n'

    if not event.file_modified(REDIRECTS_FILENAME):
        return f'{REDIRECTS_FILENAME} was not modified, ignoring\n'

    commit_url = event.head_commit.url if event.head_commit else None
    try:
        reload_redirects(commit_hash=event.after, commit_url=commit_url)
    except (RedirectError, requests.RequestException, OSError) as e:
        logging.error(f"Webhook reload failed: {e}")
        return f'Reload failed: {e}\n', 500

    return 'Redirects updated!\n'


@app.errorhandler(NotFoundError)
def not_found_error(error):
    body = render_template('error.html', status=404, title='Not found',
                           message=f'There is no redirect for "{error.short}".',
                           index_url=url_for('index'))
    return body, 404, {'Cache-Control': CACHE_CONTROL}


@app.errorhandler(InitializationError)
def initialization_error(error):
    body = render_template('error.html', status=503, title='Service unavailable',
                           message='Redirects have not been loaded yet.',
                           index_url=url_for('index'))
    return body, 503, {'Cache-Control': 'no-store'}


load_initial_redirects()

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000, debug=True)
