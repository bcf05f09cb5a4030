"""Nord-themed console output and yes/no prompts shared by every command."""

import shutil
from typing import List

import pyfiglet
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.style import Style
from rich.text import Text


# ----------------------------------------------------------------
# Nord-Themed Colors
# ----------------------------------------------------------------
class NordColors:
    POLAR_NIGHT_1: str = "#2E3440"
    POLAR_NIGHT_4: str = "#4C566A"
    SNOW_STORM_1: str = "#D8DEE9"
    SNOW_STORM_2: str = "#E5E9F0"
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"
    RED: str = "#BF616A"
    ORANGE: str = "#D08770"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"
    PURPLE: str = "#B48EAD"


console: Console = Console(highlight=False)
err_console: Console = Console(stderr=True, highlight=False)

AFFIRMATIVE_ANSWERS = ("y", "yes")


# ----------------------------------------------------------------
# UI Helper Functions
# ----------------------------------------------------------------
def create_header(title: str, subtitle: str = "", version: str = "") -> Panel:
    term_width = shutil.get_terminal_size((80, 24)).columns
    adjusted_width = min(term_width - 4, 80)
    ascii_art = ""
    for font in ("slant", "small", "standard"):
        try:
            ascii_art = pyfiglet.Figlet(font=font, width=adjusted_width).renderText(title)
        except pyfiglet.FontNotFound:
            continue
        if ascii_art.strip():
            break
    colors = [NordColors.FROST_1, NordColors.FROST_2, NordColors.FROST_3, NordColors.FROST_4]
    lines = [line for line in ascii_art.splitlines() if line.strip()]
    styled = Text()
    for i, line in enumerate(lines):
        styled.append(line + "\n", style=f"bold {colors[i % len(colors)]}")
    return Panel(
        styled,
        border_style=Style(color=NordColors.FROST_1),
        padding=(1, 2),
        title=f"[bold {NordColors.SNOW_STORM_2}]v{version}[/]" if version else None,
        title_align="right",
        subtitle=f"[bold {NordColors.SNOW_STORM_1}]{escape(subtitle)}[/]" if subtitle else None,
        subtitle_align="center",
    )


def print_message(text: str, style: str = NordColors.FROST_2, prefix: str = "•") -> None:
    console.print(f"[{style}]{prefix} {escape(text)}[/{style}]")


def print_section(title: str) -> None:
    console.print()
    console.print(f"[bold {NordColors.FROST_3}]{'─' * 69}[/]")
    console.print(f"[bold {NordColors.FROST_2}]{escape(title)}[/]")


def print_step(text: str) -> None:
    print_message(text, NordColors.FROST_2, "•")


def print_info(text: str) -> None:
    print_message(text, NordColors.SNOW_STORM_1, " ")


def print_success(text: str) -> None:
    print_message(text, NordColors.GREEN, "✓")


def print_warning(text: str) -> None:
    print_message(text, NordColors.YELLOW, "⚠")


def print_error(text: str) -> None:
    print_message(text, NordColors.RED, "✗")


def print_command(lines: List[str]) -> None:
    """Show a command exactly as it is about to be executed."""
    console.print("The following command will be executed:")
    console.print()
    for line in lines:
        console.print(f"    [bold {NordColors.SNOW_STORM_2}]{escape(line)}[/]")
    console.print()


def print_banner_box(lines: List[str], style: str = NordColors.RED) -> None:
    console.print(
        Panel(
            Text("\n".join(lines), style=f"bold {style}"),
            border_style=Style(color=style),
            padding=(0, 1),
        )
    )


# ----------------------------------------------------------------
# Prompts
# ----------------------------------------------------------------
def is_affirmative(response: str) -> bool:
    return response.strip().lower() in AFFIRMATIVE_ANSWERS


def confirm(question: str, assume_yes: bool = False) -> bool:
    """
    Ask a yes/no question. Only "y" or "yes" count as yes; an empty
    answer or anything else is a no.
    """
    if assume_yes:
        print_message(f"{question} [y/N] yes (--yes)", NordColors.FROST_3, "?")
        return True
    answer = Prompt.ask(
        f"[bold {NordColors.PURPLE}]{escape(question)}[/] {escape('[y/N]')}",
        console=console,
        default="",
        show_default=False,
    )
    return is_affirmative(answer)


def print_stderr(text: str, style: str = NordColors.RED) -> None:
    err_console.print(f"[bold {style}]{escape(text)}[/]", soft_wrap=True)
