"""
Portal markup.

Every CSS selector, grid column id and menu label the engine depends on.
When the portal markup changes, this is the only file that should need
editing.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PortalSelectors:
    # Login form
    username_input: str = 'input[name="user_id"]'
    password_input: str = 'input[name="password"]'
    security_answer_panel: str = "#answer_div"
    security_question_text: str = "#question"
    security_answer_input: str = "#answer"
    otp_request_button: str = "#getotp"
    otp_input: str = "#email_otp1"
    login_submit_button: str = "#loginFormSubmitButton"

    # Menu traversal
    menu_accordion: str = "#accordion"
    menu_module_link: str = 'a[href="menulist.htm?module_id=26"]'
    menu_panel_heading: str = "Student"
    menu_panel_option: str = "Application of Placement/Internship"
    menu_disabled_class: str = "text-danger"
    content_frame: str = 'iframe[name="myframe"]'
    notice_menu_link: str = 'a[href="Notice.jsp"]'

    # Notice grid
    grid: str = "#grid54"
    grid_row: str = "#grid54 tr.jqgrow"
    grid_column_prefix: str = "grid54_"
    column_type: str = "type"
    column_subject: str = "category"
    column_company: str = "company"
    column_notice_at: str = "noticeat"
    column_notice: str = "notice"
    column_document: str = "view1"
    document_link_text: str = "Download"

    # Dialogs
    visible_dialog: str = ".ui-dialog:visible"
    dialog_close_button: str = ".ui-dialog-titlebar-close"
    dialog_frame: str = ".ui-dialog:visible iframe"
    notice_body: str = "#printableArea"

    # Internal PDF viewer responses captured during document recovery
    document_viewer_pattern: str = (
        r"chrome-extension://mhjfbmdgcfjbbpaeojofohoefgiehjai/[0-9a-f\-]{8,}"
    )

    def row(self, index: int) -> str:
        """Selector for the zero-based grid row."""
        return f"{self.grid_row} >> nth={index}"

    def cell(self, index: int, column: str) -> str:
        return f'{self.row(index)} >> [aria-describedby="{self.grid_column_prefix}{column}"]'

    def cell_link(self, index: int, column: str) -> str:
        return f"{self.cell(index, column)} >> a"

    def panel_heading(self, text: str) -> str:
        return f'.panel-heading:has(.panel-title a:text-is("{text}"))'

    def panel_option(self, text: str) -> str:
        return f'.well a:text-is("{text}")'


DEFAULT_SELECTORS = PortalSelectors()
