"""Email HTML generation for the monthly report."""

from pathlib import Path

from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, select_autoescape

from ..config import Config
from ..processing.projector import DEMAND_PENALTY, REACTIVE_PENALTY
from ..processing.report import DEMAND_PENALTY_KIND, REACTIVE_PENALTY_KIND, ReportModel

REPORT_TEMPLATE_NAME = "report_email.html"

PENALTY_LABELS = {
    DEMAND_PENALTY_KIND: DEMAND_PENALTY,
    REACTIVE_PENALTY_KIND: REACTIVE_PENALTY,
}

# Default email template
DEFAULT_REPORT_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{{ title }}</title>
    <style>
        body {
            font-family: 'Helvetica Neue', Arial, sans-serif;
            font-size: 14px;
            line-height: 1.6;
            color: #333;
            max-width: 800px;
            margin: 0 auto;
            padding: 20px;
        }
        h1 { color: #2c3e50; font-size: 24px; margin-bottom: 4px; }
        h2 { color: #4f46e5; font-size: 18px; font-weight: 500; margin-top: 0; }
        h3 { border-bottom: 2px solid #ecf0f1; padding-bottom: 8px; }
        .kpis { width: 100%; margin: 20px 0; }
        .kpi {
            background: #f8f9fa;
            border-left: 4px solid #3498db;
            padding: 15px;
            text-align: center;
        }
        .kpi .value { font-size: 22px; font-weight: bold; }
        table.data { width: 100%; border-collapse: collapse; margin: 20px 0; }
        table.data th { background: #2c3e50; color: white; padding: 10px; text-align: left; }
        table.data td { padding: 10px; border-bottom: 1px solid #ecf0f1; }
        .amount { text-align: right; font-family: monospace; }
        .positive { color: #27ae60; }
        .negative { color: #c0392b; }
        .empty { text-align: center; color: #7f8c8d; }
        .footer {
            margin-top: 30px;
            padding-top: 20px;
            border-top: 1px solid #ecf0f1;
            font-size: 12px;
            color: #7f8c8d;
        }
    </style>
</head>
<body>
    {% if logo_url %}<img src="{{ logo_url }}" alt="Logo" style="height: 48px;">{% endif %}
    <h1>{{ title }}</h1>
    <h2>Competence: {{ report.competence_label }}</h2>

    <h3>Summary</h3>
    <table class="kpis">
        <tr>
            <td class="kpi"><div>Total cost</div><div class="value">{{ report.total_expense|currency }}</div></td>
            <td class="kpi"><div>Savings</div><div class="value {{ 'positive' if report.total_savings >= 0 else 'negative' }}">{{ report.total_savings|currency }}</div></td>
            <td class="kpi"><div>Units analysed</div><div class="value">{{ report.unit_count }}</div></td>
        </tr>
    </table>

    <h3>Free market analysis</h3>
    <table class="data">
        <thead>
            <tr>
                <th>Unit</th>
                <th class="amount">Real cost (free)</th>
                <th class="amount">Estimated cost (regulated)</th>
                <th class="amount">Savings</th>
            </tr>
        </thead>
        <tbody>
            {% for row in report.rows %}
            <tr>
                <td>{{ row.unit_name }}</td>
                <td class="amount">{{ row.real|currency }}</td>
                <td class="amount">{% if row.estimated is not none %}{{ row.estimated|currency }}{% else %}-{% endif %}</td>
                <td class="amount {{ 'positive' if row.savings >= 0 else 'negative' }}">{{ row.savings|currency }}</td>
            </tr>
            {% else %}
            <tr><td colspan="4" class="empty">No free market unit to analyse in this competence.</td></tr>
            {% endfor %}
        </tbody>
    </table>

    {% if report.penalties %}
    <h3 class="negative">Analysis notes (penalties)</h3>
    <table class="data">
        <thead>
            <tr>
                <th>Unit</th>
                <th>Penalty</th>
                <th class="amount">Value</th>
            </tr>
        </thead>
        <tbody>
            {% for penalty in report.penalties %}
            <tr>
                <td>{{ penalty.unit_name }}</td>
                <td>{{ penalty_labels.get(penalty.kind, penalty.kind) }}</td>
                <td class="amount">{{ penalty.value|currency }}</td>
            </tr>
            {% endfor %}
        </tbody>
    </table>
    {% endif %}

    <div class="footer">
        <p>This report was generated automatically by {{ organization_name }}.</p>
        <p>Please do not reply directly to this email.</p>
    </div>
</body>
</html>
"""


def format_currency(value: float | None, symbol: str = "R$") -> str:
    """Format an amount with Brazilian grouping, e.g. R$ 1.234,56."""
    value = value or 0.0
    sign = "-" if value < 0 else ""
    digits = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{symbol} {digits}"


def get_template_env(config: Config) -> Environment:
    """Get Jinja2 template environment.

    A templates/ directory in the working directory overrides the
    built-in template.
    """
    env = Environment(
        loader=ChoiceLoader([
            FileSystemLoader(Path("templates")),
            DictLoader({REPORT_TEMPLATE_NAME: DEFAULT_REPORT_TEMPLATE}),
        ]),
        autoescape=select_autoescape(["html", "xml"]),
    )
    env.filters["currency"] = lambda v: format_currency(v, config.currency)
    return env


def render_report_html(report: ReportModel, config: Config) -> str:
    """Generate the HTML email body of a report.

    Args:
        report: Composed report model.
        config: Application configuration.

    Returns:
        HTML string for email body.
    """
    template = get_template_env(config).get_template(REPORT_TEMPLATE_NAME)

    return template.render(
        report=report,
        title=config.report.title,
        organization_name=config.report.organization_name,
        logo_url=config.report.logo_url,
        penalty_labels=PENALTY_LABELS,
    )


def report_subject(report: ReportModel, config: Config) -> str:
    """Email subject line for a report."""
    if config.email:
        return config.email.subject_template.format(competence=report.competence_label)
    return f"{config.report.title} - Competence {report.competence_label}"
