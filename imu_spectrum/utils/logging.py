from rich.console import Console
from rich.markup import escape

# stdout carries CLI tables and equations only
console = Console(stderr=True)

def info(msg: str) -> None:
    console.print(f"[bold cyan]INFO[/bold cyan] {escape(msg)}")

def detail(msg: str) -> None:
    console.print(f"[dim]  · {escape(msg)}[/dim]")

def warn(msg: str) -> None:
    console.print(f"[bold yellow]WARN[/bold yellow] {escape(msg)}")

def error(msg: str) -> None:
    console.print(f"[bold red]ERROR[/bold red] {escape(msg)}")
