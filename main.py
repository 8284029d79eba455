#!/usr/bin/env python3
"""
AuthFlow terminal client

Walks through sign-in, sign-up and password recovery in the terminal,
driving the same FlowController the HTTP API uses.
"""

import argparse
import asyncio
import getpass
import logging
import sys
from typing import List, Optional, Tuple

from authflow.config import load_config
from authflow.errors import ActionResult
from authflow.flow import AuthStep, FlowController
from authflow.gateway import DemoAuthGateway
from authflow.view import FlowView, build_view

STEP_TITLES = {
    AuthStep.LOGIN.value: "Welcome Back",
    AuthStep.SIGNUP.value: "Create Account",
    AuthStep.FORGOT_PASSWORD.value: "Forgot Password",
    AuthStep.OTP_VERIFICATION.value: "Verify Code",
    AuthStep.RESET_PASSWORD.value: "Reset Password",
}

FIELD_LABELS = {
    "name": "Full name",
    "contact": "Email or phone",
    "password": "Password",
    "confirm_password": "Confirm password",
    "accept_terms": "Accept terms",
}


def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers
    )


async def prompt(text: str, secret: bool = False) -> str:
    """Read a line without blocking the event loop, so the countdown keeps running."""
    loop = asyncio.get_running_loop()
    reader = getpass.getpass if secret else input
    return (await loop.run_in_executor(None, reader, text)).strip()


def display_view(view: FlowView):
    """Render the current step."""
    print("\n" + "=" * 50)
    print(f"   {STEP_TITLES.get(view.step, view.step)}")
    print("=" * 50)

    if view.notice:
        print(f"\n  ✓ {view.notice}")
    if view.signed_in_as:
        print(f"  Signed in as {view.signed_in_as}")

    for name, value in view.fields.items():
        label = FIELD_LABELS.get(name, name)
        if name == "accept_terms":
            value = "yes" if value else "no"
        print(f"  {label}: {value}")
        if name in view.field_errors:
            print(f"    ✗ {view.field_errors[name]}")

    if view.strength:
        print(f"  Strength: {view.strength.label} ({view.strength.score}/5)")

    if view.requirements:
        print("  Password requirements:")
        for met, label in (
            (view.requirements.min_length, "At least 8 characters"),
            (view.requirements.uppercase, "One uppercase letter"),
            (view.requirements.lowercase, "One lowercase letter"),
            (view.requirements.number, "One number"),
        ):
            print(f"    {'✓' if met else '·'} {label}")

    if view.otp:
        otp = view.otp
        print(f"\n  We sent a code to {otp.masked_contact}")
        boxes = " ".join(d or "_" for d in otp.digits)
        print(f"  Code: {boxes}")
        if otp.error:
            print(f"  ✗ {otp.error}")
        if otp.can_resend:
            print("  Didn't receive the code? Resend is available.")
        else:
            print(f"  Resend in {otp.remaining}")

    if view.error:
        print(f"\n  ✗ {view.error}")


def display_result(result: ActionResult):
    """Print why an intent was refused, if it was."""
    if result.success:
        return
    if result.field_errors:
        print("\nPlease fix the highlighted fields.")
    elif result.error:
        print(f"\n✗ {result.error}")


def menu_options(view: FlowView) -> List[Tuple[str, str]]:
    """Actions available on the current step."""
    options = [(f"edit:{name}", f"Edit {FIELD_LABELS.get(name, name).lower()}") for name in view.fields]
    options += [
        (f"toggle:{name}", f"Show/hide {FIELD_LABELS[name].lower()}")
        for name in view.fields if name in ("password", "confirm_password")
    ]

    if view.step == AuthStep.LOGIN.value:
        options += [
            ("submit", "Sign in"),
            ("goto:signup", "Create an account"),
            ("goto:forgot-password", "Forgot password"),
        ]
    elif view.step == AuthStep.SIGNUP.value:
        options += [("submit", "Create account"), ("back", "Back to sign in")]
    elif view.step == AuthStep.FORGOT_PASSWORD.value:
        options += [("submit", "Send code"), ("back", "Back to sign in")]
    elif view.step == AuthStep.OTP_VERIFICATION.value:
        options += [("code", "Enter code"), ("submit", "Verify code")]
        if view.otp and view.otp.can_resend:
            options.append(("resend", "Resend code"))
        options += [("refresh", "Refresh countdown"), ("back", "Back")]
    elif view.step == AuthStep.RESET_PASSWORD.value:
        options += [("submit", "Reset password")]

    options.append(("exit", "Exit"))
    return options


async def show_menu(view: FlowView) -> Optional[str]:
    """Show the menu and return the selected action."""
    options = menu_options(view)

    print()
    for i, (_, label) in enumerate(options, 1):
        print(f"  {i:2}. {label}")

    print()
    choice = await prompt("Select an option (number): ")

    try:
        idx = int(choice) - 1
        if 0 <= idx < len(options):
            return options[idx][0]
        print("Invalid option!")
        return None
    except ValueError:
        print("Invalid input!")
        return None


async def execute_action(action: str, controller: FlowController) -> Optional[str]:
    """Execute a menu action. Returns 'exit' to quit, None otherwise."""
    if action == "exit":
        return "exit"

    if action == "refresh":
        return None

    if action.startswith("edit:"):
        name = action.split(":", 1)[1]
        label = FIELD_LABELS.get(name, name)
        if name == "accept_terms":
            answer = await prompt(f"{label}? (y/n): ")
            result = controller.update_field(name, answer.lower() == "y")
        else:
            hidden = name in ("password", "confirm_password") and name not in controller.state.revealed
            value = await prompt(f"{label}: ", secret=hidden)
            result = controller.update_field(name, value)

    elif action.startswith("toggle:"):
        result = controller.toggle_visibility(action.split(":", 1)[1])

    elif action.startswith("goto:"):
        result = controller.navigate(action.split(":", 1)[1])

    elif action == "back":
        result = controller.back()

    elif action == "code":
        code = await prompt("Verification code: ")
        result = controller.paste(code)

    elif action == "submit":
        print("\nPlease wait...")
        result = await controller.submit()

    elif action == "resend":
        print("\nResending code...")
        result = await controller.resend()

    else:
        print("Unknown action!")
        return None

    display_result(result)
    return None


async def run(args) -> int:
    """Interactive loop: render, ask, dispatch."""
    config = load_config()
    if args.resend_seconds is not None:
        config.otp.resend_seconds = args.resend_seconds

    gateway = DemoAuthGateway(
        verification_code=args.demo_code or config.demo.verification_code,
        latency_seconds=config.demo.latency_seconds if args.latency is None else args.latency,
    )
    controller = FlowController(gateway, config=config.otp, initial_step=args.step)

    print(f"\nDemo mode: use code {gateway.verification_code} to verify.")

    try:
        while True:
            view = build_view(controller)
            display_view(view)

            action = await show_menu(view)
            if action is None:
                continue

            if await execute_action(action, controller) == "exit":
                print("\nBye!")
                return 0
    finally:
        controller.close()


def main():
    parser = argparse.ArgumentParser(
        description="AuthFlow terminal client"
    )
    parser.add_argument(
        "--step",
        type=str,
        default=AuthStep.LOGIN.value,
        help="Initial step: login, signup or forgot-password (default: login)"
    )
    parser.add_argument(
        "--demo-code",
        type=str,
        help="Verification code the demo gateway accepts (default: DEMO_VERIFICATION_CODE)"
    )
    parser.add_argument(
        "--latency",
        type=float,
        help="Simulated gateway latency in seconds"
    )
    parser.add_argument(
        "--resend-seconds",
        type=int,
        help="Countdown before a code may be resent (default: OTP_RESEND_SECONDS)"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()
    setup_logging(args.verbose, args.log_file)

    try:
        sys.exit(asyncio.run(run(args)))
    except (KeyboardInterrupt, EOFError):
        print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
