"""
CLI Runner - Startet das Agent System für eine feste Dauer.

Usage:
    uv run python -m revision_agents
    uv run python -m revision_agents 30
"""

import asyncio
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import load_config
from .logging_setup import setup_logging
from .system import AgentSystem, SystemMetrics

console = Console()

DEFAULT_RUN_SECONDS = 10.0


def render_metrics(metrics: SystemMetrics) -> Table:
    """Metriken pro Agent als Tabelle."""
    table = Table(title="Agent Metrics", border_style="dim")
    table.add_column("Agent", style="cyan")
    table.add_column("Completed", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Error Rate", justify="right")
    table.add_column("Health", style="green")

    for agent in metrics.agents:
        table.add_row(
            agent.agent_id,
            str(agent.tasks_completed),
            str(agent.tasks_failed),
            f"{agent.error_rate:.2f}",
            agent.health_status.value,
        )

    table.add_section()
    table.add_row("Findings", str(metrics.total_findings), "", "", "")
    table.add_row("Active Plans", str(metrics.active_plans), "", "", "")
    table.add_row("Messages", str(metrics.message_count), "", "", "")
    table.add_row("Overall", "", "", "", metrics.overall_health.value)
    return table


async def run_system(duration: float) -> SystemMetrics:
    """Startet das System, lässt es `duration` Sekunden laufen und stoppt es."""
    config = load_config()
    setup_logging(config.log_level, console=console)

    console.print(Panel(
        "[bold cyan]REVISION AGENTS[/bold cyan]\n"
        f"[dim]Research + Planning, Laufzeit {duration:.0f}s[/dim]",
        border_style="cyan"
    ))

    system = AgentSystem(config)
    await system.start()
    try:
        await asyncio.sleep(duration)
    finally:
        await system.stop()

    metrics = system.get_system_metrics()
    console.print()
    console.print(render_metrics(metrics))

    for plan in system.planning_agent.get_active_plans():
        console.print(
            f"  [bold]{plan.plan_id}[/bold] {plan.status.value} "
            f"({len(plan.findings)} findings, {plan.total_effort:.0f}h, "
            f"risk {plan.risk_assessment.overall_risk_level.value})"
        )
    return metrics


def main():
    """Entry Point für den CLI Runner."""
    duration = float(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_RUN_SECONDS
    asyncio.run(run_system(duration))


if __name__ == "__main__":
    main()
