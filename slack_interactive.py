import re
import logging
from dotenv import load_dotenv
from flask import Flask, request, jsonify

from config import get_settings
from core.commands import CommandHandler
from core.lifecycle import TaskManager
from core.slack import HELP_TEXT, format_result, get_notifier
from core.storage import get_store
from core.users import SlackDirectory, UserRef, UserResolver

load_dotenv()

# Set up debug logging
logging.basicConfig(level=logging.DEBUG, format='%(asctime)s %(levelname)s %(message)s')
logger = logging.getLogger(__name__)

BOT_MENTION = re.compile(r"<@[A-Z0-9]+>")


def build_handler(store=None, resolver=None, sink=None):
    store = store or get_store()
    resolver = resolver or UserResolver(store, SlackDirectory())
    manager = TaskManager(store, resolver)
    return CommandHandler(manager, sink=sink or get_notifier(), list_limit=get_settings().list_limit)


def create_app(handler=None, notifier=None, resolver=None):
    app = Flask(__name__)
    notifier = notifier or get_notifier()
    handler = handler or build_handler(resolver=resolver, sink=notifier)
    resolver = resolver or handler.manager.user_resolver

    def acting_user(user_id, team_id, username=None):
        if resolver is None:
            return UserRef(user_id, username or user_id, team_id)
        return resolver.identify(user_id, team_id, username)

    # --- Health check endpoint ---
    @app.route('/health', methods=['GET'])
    def health_check():
        """Read-only health check route for deployment verification."""
        logger.debug("Health check endpoint called.")
        return jsonify({"status": "ok", "message": "Service is healthy."}), 200

    # --- Slack Events API: DMs and app mentions ---
    @app.route('/slack/events', methods=['POST'])
    def slack_events():
        data = request.get_json(silent=True)
        if not data:
            logger.error('No payload received from Slack.')
            return jsonify({"error": "No payload received."}), 400

        if data.get('type') == 'url_verification':
            return jsonify({"challenge": data.get('challenge')}), 200

        event = data.get('event') or {}
        event_type = event.get('type')
        if event_type not in ('message', 'app_mention') or event.get('bot_id') or event.get('subtype'):
            return jsonify({"ok": True}), 200

        is_mention = event_type == 'app_mention'
        text = event.get('text') or ''
        if is_mention:
            text = BOT_MENTION.sub('', text).strip()

        team_id = event.get('team') or data.get('team_id')
        channel_id = event.get('channel')
        logger.debug(f"Event {event_type} from {event.get('user')} in {channel_id}: {text!r}")

        user = acting_user(event.get('user'), team_id)
        result = handler.handle_message(text, user, team_id, channel_id, is_mention=is_mention)
        if result is not None:
            notifier.post_message(channel_id, format_result(result))
        return jsonify({"ok": True}), 200

    # --- /todo slash command ---
    @app.route('/slack/commands', methods=['POST'])
    def slack_command():
        form = request.form
        user_id = form.get('user_id')
        team_id = form.get('team_id')
        if not user_id or not team_id:
            return jsonify({"response_type": "ephemeral", "text": "Missing user or team."}), 400

        user = acting_user(user_id, team_id, form.get('user_name'))
        result = handler.handle_message(form.get('text', ''), user, team_id, form.get('channel_id'),
                                        is_mention=True)
        if result is None:
            return jsonify({"response_type": "ephemeral", "text": HELP_TEXT}), 200
        return jsonify({"response_type": "ephemeral", "text": format_result(result)}), 200

    return app


app = create_app()
