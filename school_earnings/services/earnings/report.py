"""Summary and team rollups over a list of controller earnings."""

from typing import Dict, List, Sequence

from school_earnings.schemas.earnings import (
    ControllerEarnings,
    ControllerEarningsReport,
    EarningsSummary,
    TeamStats,
)


def summarize(earnings: Sequence[ControllerEarnings]) -> EarningsSummary:
    total_earnings = sum(e.total_earnings for e in earnings)
    return EarningsSummary(
        total_controllers=len(earnings),
        total_earnings=total_earnings,
        total_active_students=sum(e.active_students for e in earnings),
        total_paid_students=sum(e.paid_this_month for e in earnings),
        average_earnings=total_earnings / len(earnings) if earnings else 0.0,
    )


def group_by_team(earnings: Sequence[ControllerEarnings]) -> List[TeamStats]:
    """Roll controllers up per team, keeping the order teams first appear in."""
    teams: Dict[int, TeamStats] = {}
    for earning in earnings:
        team = teams.get(earning.team_id)
        if team is None:
            team = TeamStats(
                team_id=earning.team_id,
                team_name=earning.team_name,
                team_leader=earning.team_leader,
                controllers=[],
            )
            teams[earning.team_id] = team

        team.controllers.append(earning)
        team.total_earnings += earning.total_earnings
        team.total_active_students += earning.active_students
        team.total_paid_students += earning.paid_this_month

    return list(teams.values())


def build_report(earnings: Sequence[ControllerEarnings]) -> ControllerEarningsReport:
    earnings = list(earnings)
    return ControllerEarningsReport(
        earnings=earnings,
        summary=summarize(earnings),
        team_stats=group_by_team(earnings),
    )
