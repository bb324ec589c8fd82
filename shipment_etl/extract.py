"""
Google Sheets Grid Source

Reads a worksheet through the Sheets API and hands it to the pipeline as a
CellGrid. Authentication uses a service account.
"""

import logging
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials

from shipment_etl.grid import CellGrid

logger = logging.getLogger(__name__)


class GoogleSheetsExtractor:
    """
    Extracts a worksheet as a dense cell grid.
    """

    SCOPES = [
        "https://www.googleapis.com/auth/spreadsheets.readonly",
        "https://www.googleapis.com/auth/drive.readonly",
    ]

    def __init__(self, credentials_path: str):
        """
        Initialize Google Sheets extractor.

        Args:
            credentials_path: Path to service account JSON file

        Raises:
            FileNotFoundError: If credentials file not found
        """
        self.credentials_path = credentials_path
        self.client: Optional[gspread.Client] = None
        self._authenticate()

    def _authenticate(self) -> None:
        try:
            credentials = Credentials.from_service_account_file(
                self.credentials_path, scopes=self.SCOPES
            )
            self.client = gspread.authorize(credentials)
            logger.info("Successfully authenticated with Google Sheets API")
        except FileNotFoundError:
            logger.error(f"Credentials file not found: {self.credentials_path}")
            raise
        except Exception as e:
            logger.error(f"Google Sheets authentication failed: {e}")
            raise

    def extract_grid(self, sheet_id: str, sheet_name: Optional[str] = None) -> CellGrid:
        """
        Read every value of a worksheet, header row included.

        Args:
            sheet_id: Google Sheet ID
            sheet_name: Worksheet tab; the first tab when omitted

        Returns:
            CellGrid whose row 1 is the header row

        Raises:
            gspread.exceptions.SpreadsheetNotFound: Unknown sheet ID
            gspread.exceptions.WorksheetNotFound: Unknown tab name
        """
        try:
            spreadsheet = self.client.open_by_key(sheet_id)
            worksheet = spreadsheet.worksheet(sheet_name) if sheet_name else spreadsheet.sheet1
            logger.info(f"Extracting grid from worksheet: {worksheet.title}")

            values = worksheet.get_all_values()
        except gspread.exceptions.SpreadsheetNotFound:
            logger.error(f"Spreadsheet not found: {sheet_id}")
            raise
        except gspread.exceptions.WorksheetNotFound:
            logger.error(f"Worksheet '{sheet_name}' not found in spreadsheet")
            raise
        except Exception as e:
            logger.error(f"Failed to extract data from Google Sheets: {e}")
            raise

        grid = CellGrid.from_rows(values)
        if grid.row_count == 0:
            logger.warning(f"No data found in worksheet {sheet_name or '(first)'}")
        else:
            logger.info(f"Extracted grid of {grid.row_count} rows x {grid.column_count} columns")
        return grid


def fetch_grid(settings) -> CellGrid:
    """
    Convenience function to extract the configured worksheet.

    Args:
        settings: Settings object with GOOGLE_CREDENTIALS_PATH, GOOGLE_SHEET_ID
            and SHEET_NAME

    Returns:
        CellGrid of the worksheet
    """
    extractor = GoogleSheetsExtractor(settings.GOOGLE_CREDENTIALS_PATH)
    return extractor.extract_grid(settings.GOOGLE_SHEET_ID, settings.SHEET_NAME)
