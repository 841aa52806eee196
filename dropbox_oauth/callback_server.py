"""
Ephemeral loopback listener receiving the Dropbox OAuth redirect
"""
import asyncio
import logging
from typing import Optional

from aiohttp import web

import settings
from utils.cancellation import CancelToken
from utils.errors import CanceledError, OAuthConfigError, UnknownSyncError

logger = logging.getLogger(__name__)

_PAGE = """<!doctype html>
<html lang="en">
    <head>
        <meta charset="utf-8" />
        <title>Goal Tracker</title>
    </head>
    <body>
        <p>{message}</p>
        <p>You can close this window.</p>
        <script>setTimeout(function() {{ window.close(); }}, 500);</script>
    </body>
</html>
"""

SUCCESS_MESSAGE = "Authentication complete."
FAILURE_MESSAGE = "Authentication was not completed."


class LoopbackCallbackServer:
    """Single-use HTTP listener on 127.0.0.1 with an OS-assigned port

    The wait resolves exactly once: with the authorization code, with the
    error carried by the redirect, on cancellation, or on timeout. The
    listener is torn down on every one of those paths.
    """

    def __init__(self, host: Optional[str] = None, path: Optional[str] = None):
        self.host = host or settings.OAUTH_CALLBACK_HOST
        self.path = path or settings.OAUTH_CALLBACK_PATH
        self.port: Optional[int] = None
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self._result: Optional[asyncio.Future] = None

        self.app.router.add_get(self.path, self._handle_callback)

    @property
    def redirect_uri(self) -> str:
        if self.port is None:
            raise RuntimeError("Callback server is not running")
        return f"http://{self.host}:{self.port}{self.path}"

    @property
    def settled(self) -> bool:
        return self._result is not None and self._result.done()

    async def start(self) -> None:
        """Bind the listener and record the assigned port"""
        self._result = asyncio.get_running_loop().create_future()
        self.runner = web.AppRunner(self.app, access_log=None)
        await self.runner.setup()

        site = web.TCPSite(self.runner, host=self.host, port=0)
        await site.start()
        self.port = self.runner.addresses[0][1]
        logger.info(f"OAuth callback server listening on {self.redirect_uri}")

    async def _handle_callback(self, request: web.Request) -> web.StreamResponse:
        if self._result is None or self._result.done():
            return web.Response(text="This sign-in link has already been used.", status=410)

        code = request.query.get("code")
        error = request.query.get("error")

        if error:
            logger.info(f"Authorization redirect carried error: {error}")
            if error == "access_denied":
                outcome = CanceledError("User cancelled.")
            else:
                description = request.query.get("error_description")
                detail = f"{error}: {description}" if description else error
                outcome = OAuthConfigError(f"Authorization failed ({detail})")
        elif not code:
            outcome = OAuthConfigError("Missing authorization code")
        else:
            outcome = None

        message = SUCCESS_MESSAGE if outcome is None else FAILURE_MESSAGE
        response = web.Response(text=_PAGE.format(message=message), content_type="text/html")
        # Flush the page before settling so teardown never cuts the browser off
        await response.prepare(request)
        await response.write_eof()

        if not self._result.done():
            if outcome is None:
                logger.info("Authorization code received (not logging value)")
                self._result.set_result(code)
            else:
                self._result.set_exception(outcome)
        return response

    async def wait_for_code(
        self,
        cancel: Optional[CancelToken] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Wait for the redirect and return the authorization code

        Args:
            cancel: Token aborting the wait
            timeout: Seconds to wait (defaults to settings.OAUTH_REDIRECT_TIMEOUT)

        Returns:
            The authorization code

        Raises:
            CanceledError: Cancelled, or the user denied access in the browser
            OAuthConfigError: The redirect carried another error or no code
            UnknownSyncError: No redirect arrived in time
        """
        if self._result is None:
            raise RuntimeError("Callback server is not running")
        if timeout is None:
            timeout = settings.OAUTH_REDIRECT_TIMEOUT

        cancel_waiter = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        waiters = {self._result}
        if cancel_waiter is not None:
            waiters.add(cancel_waiter)

        try:
            await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)

            if self._result.done():
                return self._result.result()
            if cancel is not None and cancel.is_canceled:
                logger.info("OAuth wait cancelled")
                raise CanceledError("User cancelled.")
            logger.warning(f"OAuth callback timeout after {timeout} seconds")
            raise UnknownSyncError("OAuth timed out.")
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()
            if not self._result.done():
                self._result.cancel()
            await self.stop()

    async def stop(self) -> None:
        """Stop the listener; safe to call more than once"""
        if self.runner:
            runner, self.runner = self.runner, None
            await runner.cleanup()
            logger.debug("OAuth callback server closed")
