"""
Reporting and Export Module for Shift Planning System

Handles PDF, Excel, and CSV export of the weekly shift roster with
per-worker hour totals.
"""

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, PageBreak
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from datetime import datetime, date, timedelta
from pathlib import Path
from typing import Dict, List, Optional
import logging
from xml.sax.saxutils import escape

from .data_manager import DataManager, ScheduleData, Shift, DATE_FORMAT, week_start_for

logger = logging.getLogger(__name__)


class ReportGenerator:
    """Main class for generating reports and exports"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Setup custom report styles"""
        self.styles.add(ParagraphStyle(
            name='CustomTitle',
            parent=self.styles['Heading1'],
            fontSize=18,
            spaceAfter=30,
            alignment=1  # Center alignment
        ))

        self.styles.add(ParagraphStyle(
            name='CustomHeading',
            parent=self.styles['Heading2'],
            fontSize=14,
            spaceAfter=12
        ))

        self.styles.add(ParagraphStyle(
            name='ShiftCell',
            parent=self.styles['Normal'],
            fontSize=7,
            leading=9
        ))

    def _week_days(self, week_start: date) -> List[date]:
        week_start = week_start_for(week_start)
        return [week_start + timedelta(days=i) for i in range(7)]

    def export_week_pdf(self, week_start: date, output_path: str) -> bool:
        """Export weekly roster to PDF"""
        try:
            days = self._week_days(week_start)
            schedule = self.data_manager.load_all()
            week = self.data_manager.get_shifts_for_week(days[0])

            doc = SimpleDocTemplate(
                output_path,
                pagesize=landscape(A4),
                rightMargin=0.5*inch,
                leftMargin=0.5*inch,
                topMargin=0.5*inch,
                bottomMargin=0.5*inch
            )

            story = []
            title_text = (f"Shift Schedule - {days[0].strftime('%d %b %Y')}"
                          f" to {days[-1].strftime('%d %b %Y')}")
            story.append(Paragraph(title_text, self.styles['CustomTitle']))
            story.append(Spacer(1, 10))

            story.append(self._create_week_table(days, week, schedule))

            story.append(Spacer(1, 20))
            story.append(self._create_legend())

            story.append(PageBreak())
            story.extend(self._create_hours_content(week, schedule))

            doc.build(story)
            return True

        except Exception as e:
            logger.error(f"Error creating PDF: {e}", exc_info=True)
            return False

    def _create_week_table(self, days: List[date], week: Dict[str, List[Shift]],
                           schedule: ScheduleData) -> Table:
        """Create 7-column week table for PDF"""
        header = [d.strftime("%a %d/%m") for d in days]
        row = []
        for day in days:
            shifts = week.get(day.strftime(DATE_FORMAT), [])
            row.append([self._format_shift_cell(s, schedule) for s in shifts] or "---")

        table = Table([header, row], colWidths=[1.5*inch]*7)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 10),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 12),
            ('BACKGROUND', (0, 1), (-1, -1), colors.beige),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        return table

    def _format_shift_cell(self, shift: Shift, schedule: ScheduleData) -> Paragraph:
        """Format a single shift inside a day cell"""
        badge = "⇄ " if shift.has_pending_swap else ""
        content = f"<b>{badge}{escape(schedule.worker_name(shift.worker_id, 'Unknown'))}</b><br/>"
        content += f"{shift.start_time}-{shift.end_time}<br/>"
        content += escape(schedule.department_name(shift.department_id, "No department"))
        machine = schedule.machine_name(shift.machine_id)
        if machine:
            content += f"<br/><i>{escape(machine)}</i>"
        return Paragraph(content, self.styles['ShiftCell'])

    def _create_legend(self) -> Table:
        """Create legend for PDF"""
        legend_data = [
            ['Legend'],
            ['⇄ Swap request pending'],
            ['Italic: assigned machine'],
            ['--- No shifts scheduled']
        ]

        legend_table = Table(legend_data, colWidths=[3*inch])
        legend_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.lightgrey),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
        ]))

        return legend_table

    def _create_hours_content(self, week: Dict[str, List[Shift]], schedule: ScheduleData) -> List:
        """Per-worker totals for the week"""
        content = [
            Paragraph("Weekly Hours", self.styles['CustomTitle']),
            Spacer(1, 20),
        ]

        summary_df = self._create_summary_dataframe(week, schedule)
        data = [['Worker', 'Shifts', 'Hours', 'Pending Swaps']]
        for record in summary_df.to_dict('records'):
            data.append([
                record['Worker'],
                str(record['Shifts']),
                f"{record['Hours']:.1f}",
                str(record['Pending_Swaps'])
            ])

        hours_table = Table(data, colWidths=[2.5*inch, 1*inch, 1*inch, 1.2*inch])
        hours_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
        ]))
        content.append(hours_table)
        return content

    def export_week_excel(self, week_start: date, output_path: str) -> bool:
        """Export weekly roster to Excel with summary and worker sheets"""
        try:
            days = self._week_days(week_start)
            schedule = self.data_manager.load_all()
            week = self.data_manager.get_shifts_for_week(days[0])

            with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
                self._create_shifts_dataframe(week, schedule).to_excel(writer, sheet_name='Shifts', index=False)
                self._create_summary_dataframe(week, schedule).to_excel(writer, sheet_name='Summary', index=False)
                self._create_worker_dataframe(schedule).to_excel(writer, sheet_name='Workers', index=False)
                self._format_excel_worksheets(writer)

            return True

        except Exception as e:
            logger.error(f"Error exporting to Excel: {e}", exc_info=True)
            return False

    def _create_shifts_dataframe(self, week: Dict[str, List[Shift]], schedule: ScheduleData) -> pd.DataFrame:
        """One row per shift"""
        data = []
        for date_str, shifts in week.items():
            day_name = datetime.strptime(date_str, DATE_FORMAT).strftime("%A")
            for shift in shifts:
                data.append({
                    'Date': date_str,
                    'Day': day_name,
                    'Worker': schedule.worker_name(shift.worker_id, 'Unknown'),
                    'Start': shift.start_time,
                    'End': shift.end_time,
                    'Hours': shift.duration_hours(),
                    'Department': schedule.department_name(shift.department_id),
                    'Machine': schedule.machine_name(shift.machine_id),
                    'Notes': shift.notes or '',
                    'Swap_Pending_To': schedule.worker_name(shift.swap_state.target_worker_id)
                    if shift.has_pending_swap else '',
                })

        columns = ['Date', 'Day', 'Worker', 'Start', 'End', 'Hours', 'Department', 'Machine',
                   'Notes', 'Swap_Pending_To']
        return pd.DataFrame(data, columns=columns)

    def _create_summary_dataframe(self, week: Dict[str, List[Shift]], schedule: ScheduleData) -> pd.DataFrame:
        """Shift count and hours per worker, busiest first"""
        shifts_df = self._create_shifts_dataframe(week, schedule)
        workers = pd.DataFrame({'Worker': [w.name for w in schedule.workers]})
        if shifts_df.empty:
            summary = workers.assign(Shifts=0, Hours=0.0, Pending_Swaps=0)
        else:
            grouped = shifts_df.groupby('Worker').agg(
                Shifts=('Date', 'count'),
                Hours=('Hours', 'sum'),
                Pending_Swaps=('Swap_Pending_To', lambda s: int((s != '').sum()))
            ).reset_index()
            summary = workers.merge(grouped, on='Worker', how='outer').fillna(
                {'Shifts': 0, 'Hours': 0.0, 'Pending_Swaps': 0}
            )
            summary = summary.astype({'Shifts': int, 'Pending_Swaps': int})
        return summary.sort_values(['Hours', 'Worker'], ascending=[False, True]).reset_index(drop=True)

    def _create_worker_dataframe(self, schedule: ScheduleData) -> pd.DataFrame:
        """Create worker DataFrame for Excel export"""
        return pd.DataFrame(
            [{'ID': w.id, 'Name': w.name} for w in schedule.workers],
            columns=['ID', 'Name']
        )

    def _format_excel_worksheets(self, writer):
        """Format Excel worksheets"""
        from openpyxl.styles import PatternFill, Font

        header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        header_font = Font(color="FFFFFF", bold=True)

        for worksheet in writer.sheets.values():
            for cell in worksheet[1]:
                cell.fill = header_fill
                cell.font = header_font

            # Auto-adjust column widths
            for column in worksheet.columns:
                max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
                worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

    def export_week_csv(self, week_start: date, output_path: str) -> bool:
        """Export weekly roster to CSV format"""
        try:
            days = self._week_days(week_start)
            schedule = self.data_manager.load_all()
            week = self.data_manager.get_shifts_for_week(days[0])
            self._create_shifts_dataframe(week, schedule).to_csv(output_path, index=False)
            return True

        except Exception as e:
            logger.error(f"Error exporting to CSV: {e}", exc_info=True)
            return False


class ExportManager:
    """Manager class for handling all export operations"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager
        self.report_generator = ReportGenerator(data_manager)

    def export_week(self, week_start: date, format_type: str, output_path: str) -> bool:
        """Export the week containing week_start in the given format"""
        if format_type.lower() == 'pdf':
            return self.report_generator.export_week_pdf(week_start, output_path)
        elif format_type.lower() == 'excel':
            return self.report_generator.export_week_excel(week_start, output_path)
        elif format_type.lower() == 'csv':
            return self.report_generator.export_week_csv(week_start, output_path)
        else:
            raise ValueError(f"Unsupported format: {format_type}")

    def get_default_filename(self, week_start: date, format_type: str) -> str:
        """Generate default filename for export"""
        monday = week_start_for(week_start)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        extension = "xlsx" if format_type.lower() == "excel" else format_type.lower()

        return f"shift_schedule_week_{monday.strftime('%Y%m%d')}_{timestamp}.{extension}"

    def batch_export(self, week_start: date, output_dir: str,
                     formats: Optional[List[str]] = None) -> Dict[str, bool]:
        """Export the week in multiple formats"""
        if formats is None:
            formats = ['pdf', 'excel', 'csv']

        results = {}
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        for format_type in formats:
            file_path = output_path / self.get_default_filename(week_start, format_type)
            try:
                results[format_type] = self.export_week(week_start, format_type, str(file_path))
            except ValueError as e:
                logger.error(f"Error exporting {format_type}: {e}", exc_info=True)
                results[format_type] = False

        return results
