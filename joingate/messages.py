"""User-facing message templates.

Templates use `str.format` placeholders. German is the default locale; the
active locale is switched once at startup via `set_locale`.
"""

import logging

logger = logging.getLogger(__name__)


MESSAGES: dict[str, dict[str, str]] = {
    "de": {
        # General
        "welcome": (
            "👋 Hallo! Um deine Anfrage abzuschließen, antworte bitte mit einer kurzen "
            "Begründung (mind. {min_words} Wörter, max. {max_chars} Zeichen), warum du beitreten möchtest."
        ),
        "invalid-input": "⚠️ Bitte sende eine Textnachricht mit deiner Begründung.",
        "error-generic": "⚠️ Entschuldigung, da ist etwas schiefgelaufen. Bitte versuche es erneut.",
        "thank-you": "Danke! Deine Anfrage wurde zur Überprüfung eingereicht. 📨",
        "dm-failed": "⚠️ Konnte keine DM senden. Überprüfe deine Privatsphäre-Einstellungen oder starte den Bot neu.",
        "saved-manual-follow-up": (
            "Deine Anfrage wurde gespeichert, aber die Admins konnten nicht sofort benachrichtigt "
            "werden. Wir melden uns in Kürze."
        ),
        "no-active-request": "ℹ️ Es liegt keine offene Beitrittsanfrage von dir vor.",
        "request-already-decided": "⚠️ Über deine Anfrage wurde bereits entschieden.",

        # Validation
        "reason-too-short": (
            "⚠️ Deine Begründung ist zu kurz. Bitte schreibe mindestens {min_words} Wörter, "
            "damit wir wissen, wer du bist."
        ),
        "reason-too-long": "⚠️ Deine Begründung ist zu lang (max. {max_chars} Zeichen).",
        "message-empty": "⚠️ Nachricht darf nicht leer sein.",
        "message-too-long": "⚠️ Nachricht ist zu lang (max. {max_chars} Zeichen).",

        # Invalid transitions
        "state-not-pending": "⚠️ Die Anfrage wartet nicht mehr auf den Start.",
        "state-not-collecting": "⚠️ Die Anfrage erwartet gerade keine Begründung.",
        "state-not-reviewing": "⚠️ Die Anfrage wartet nicht auf eine Prüfung.",
        "reason-missing": "⚠️ Ohne Begründung kann nicht entschieden werden.",
        "admin-msg-already-set": "⚠️ Für diese Anfrage existiert bereits eine Prüfkarte.",

        # Decisions
        "approved-user": "✅ Glückwunsch! Deine Beitrittsanfrage wurde genehmigt! 🎉",
        "approved-user-intro": "Hier geht es zur Gruppe: {join_link}",
        "declined-user": "❌ Deine Beitrittsanfrage wurde leider abgelehnt.",
        "request-processed": "⚠️ Diese Anfrage wurde bereits bearbeitet.",
        "request-not-found": "⚠️ Anfrage nicht gefunden oder abgelaufen.",
        "not-authorized": "⛔️ Nicht autorisiert.",
        "action-success-approved": "Anfrage genehmigt!",
        "action-success-declined": "Anfrage abgelehnt!",
        "already-approved": "Nutzer ist bereits Mitglied, Anfrage als genehmigt markiert.",
        "already-declined": "Anfrage war bereits erledigt, als abgelehnt markiert.",
        "error-approving": "Fehler beim Genehmigen der Anfrage. Bitte erneut versuchen.",
        "error-declining": "Fehler beim Ablehnen der Anfrage. Bitte erneut versuchen.",
        "msg-added": "✅ Nachricht hinzugefügt. Die Admins wurden benachrichtigt.",
        "error-adding-msg": "⚠️ Fehler beim Hinzufügen der Nachricht.",

        # Review card
        "card-title-pending": "📋 Neue Beitrittsanfrage - Bitte prüfen",
        "card-title-approved": "✅ GENEHMIGT",
        "card-title-declined": "❌ ABGELEHNT",
        "card-user": "👤 Nutzer: {name}",
        "card-id": "🆔 ID: {user_id}",
        "card-time": "🕐 Zeitpunkt: {time}",
        "card-reason": "📝 Begründung:",
        "card-decided-by-approved": "GENEHMIGT von: {admin_name}",
        "card-decided-by-declined": "ABGELEHNT von: {admin_name}",
        "button-approve": "✅ Genehmigen",
        "button-decline": "❌ Ablehnen",

        # Admin
        "admin-dashboard": "<b>Admin-Übersicht</b>\n\nAnsicht wählen:",
        "admin-button-pending": "📋 Offene Anfragen",
        "admin-button-completed": "✅ Erledigte Anfragen",
        "admin-title-pending": "Offene Beitrittsanfragen",
        "admin-title-completed": "Erledigte Beitrittsanfragen",
        "admin-no-requests": "Keine Anfragen gefunden.",
        "admin-fetching": "Lade die letzten {limit} Anfragen...",
        "admin-cleanup-none": "Keine offenen Anfragen.",
        "admin-cleanup-nothing-to-clean": "Keine offenen Anfragen zum Aufräumen.",
        "admin-cleanup-preview": (
            "<b>Offen (Aufräumen)</b>\n\n{listing}Um alle {count} als veraltet zu markieren, sende:\n"
            "<code>/cleanup confirm</code>"
        ),
        "admin-cleanup-done": "{marked} offene Anfrage(n) als veraltet (abgelehnt) markiert.",
        "admin-alert": "⚠️ Fehler in {context}\n\n{error}",
        "invalid-callback": "Ungültige Aktion.",
        "invalid-request-id": "Ungültige Anfrage-ID: {request_id}",
    },
    "en": {
        "welcome": (
            "👋 Hi! To complete your request, please reply with a short reason "
            "(at least {min_words} words, at most {max_chars} characters) why you want to join."
        ),
        "invalid-input": "⚠️ Please send a text message with your reason.",
        "error-generic": "⚠️ Sorry, something went wrong. Please try again.",
        "thank-you": "Thanks! Your request has been submitted for review. 📨",
        "dm-failed": "⚠️ Could not send a DM. Check your privacy settings or restart the bot.",
        "saved-manual-follow-up": (
            "Your request has been saved, but we couldn't notify the admins immediately. "
            "We will review it shortly."
        ),
        "no-active-request": "ℹ️ You have no open join request.",
        "request-already-decided": "⚠️ Your request has already been decided.",
        "reason-too-short": (
            "⚠️ Your reason is too short. Please write at least {min_words} words so we know who you are."
        ),
        "reason-too-long": "⚠️ Your reason is too long (max. {max_chars} characters).",
        "message-empty": "⚠️ Message must not be empty.",
        "message-too-long": "⚠️ Message is too long (max. {max_chars} characters).",
        "state-not-pending": "⚠️ The request is no longer waiting to start.",
        "state-not-collecting": "⚠️ The request is not expecting a reason right now.",
        "state-not-reviewing": "⚠️ The request is not awaiting review.",
        "reason-missing": "⚠️ A request without a reason cannot be decided.",
        "admin-msg-already-set": "⚠️ This request already has a review card.",
        "approved-user": "✅ Congratulations! Your join request has been approved! 🎉",
        "approved-user-intro": "Here is the group: {join_link}",
        "declined-user": "❌ Unfortunately your join request has been declined.",
        "request-processed": "⚠️ This request has already been processed.",
        "request-not-found": "⚠️ Request not found or expired.",
        "not-authorized": "⛔️ Not authorized.",
        "action-success-approved": "Request approved!",
        "action-success-declined": "Request declined!",
        "already-approved": "User is already a member, request marked as approved.",
        "already-declined": "Request was already resolved, marked as declined.",
        "error-approving": "Error approving the request. Please try again.",
        "error-declining": "Error declining the request. Please try again.",
        "msg-added": "✅ Message added. The admins have been notified.",
        "error-adding-msg": "⚠️ Error adding the message.",
        "card-title-pending": "📋 New join request - please review",
        "card-title-approved": "✅ APPROVED",
        "card-title-declined": "❌ DECLINED",
        "card-user": "👤 User: {name}",
        "card-id": "🆔 ID: {user_id}",
        "card-time": "🕐 Time: {time}",
        "card-reason": "📝 Reason:",
        "card-decided-by-approved": "APPROVED by: {admin_name}",
        "card-decided-by-declined": "DECLINED by: {admin_name}",
        "button-approve": "✅ Approve",
        "button-decline": "❌ Decline",
        "admin-dashboard": "<b>Admin Dashboard</b>\n\nSelect a view:",
        "admin-button-pending": "📋 Pending Requests",
        "admin-button-completed": "✅ Completed Requests",
        "admin-title-pending": "Pending Join Requests",
        "admin-title-completed": "Completed Join Requests",
        "admin-no-requests": "No requests found.",
        "admin-fetching": "Fetching last {limit} requests...",
        "admin-cleanup-none": "No pending requests.",
        "admin-cleanup-nothing-to-clean": "No pending requests to clean.",
        "admin-cleanup-preview": (
            "<b>Pending (stale cleanup)</b>\n\n{listing}To mark all {count} as stale, send:\n"
            "<code>/cleanup confirm</code>"
        ),
        "admin-cleanup-done": "Marked {marked} pending request(s) as stale (declined).",
        "admin-alert": "⚠️ Error in {context}\n\n{error}",
        "invalid-callback": "Invalid action.",
        "invalid-request-id": "Invalid request ID format: {request_id}",
    },
}

DEFAULT_LOCALE = "de"

_active_locale = DEFAULT_LOCALE


def set_locale(locale: str) -> None:
    """Select the catalog used by `get_message`."""
    global _active_locale
    if locale not in MESSAGES:
        logger.warning(f"Unknown locale {locale!r}, keeping {_active_locale!r}")
        return
    _active_locale = locale


def get_locale() -> str:
    return _active_locale


def get_message(key: str, **params) -> str:
    """Render a message; unknown keys come back unchanged."""
    template = MESSAGES[_active_locale].get(key)
    if template is None:
        logger.warning(f"Missing translation for key: {key}")
        return key

    try:
        return template.format(**params)
    except KeyError as e:
        logger.warning(f"Missing parameter {e} for message {key}")
        return template
