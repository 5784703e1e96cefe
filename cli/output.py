"""
Output Formatting Module for the Diploma Registry CLI

Provides output formatting for CLI results as tables, JSON or YAML.
"""

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from tabulate import tabulate


# Hashes are 66 characters with prefix and must stay readable in tables
MAX_VALUE_WIDTH = 70


class OutputFormatter:
    """Universal output formatter for CLI results."""

    def __init__(self, format_type: str = 'table', color_output: bool = True):
        """
        Initialize output formatter.

        Args:
            format_type: Output format (table, json, yaml)
            color_output: Enable colored output
        """
        self.format_type = format_type
        self.color_output = color_output and sys.stdout.isatty()

    def format(self, data: Any, headers: Optional[List[str]] = None) -> str:
        """
        Format data according to specified format type.

        Args:
            data: Data to format
            headers: Optional headers for table format

        Returns:
            Formatted string output
        """
        if self.format_type == 'json':
            return self.format_json(data)
        elif self.format_type == 'yaml':
            return self.format_yaml(data)
        else:
            return self.format_table(data, headers)

    def format_json(self, data: Any) -> str:
        """Format data as JSON."""
        return json.dumps(data, indent=2, default=self._json_encoder)

    def format_yaml(self, data: Any) -> str:
        """Format data as YAML."""
        # Round-trip through JSON so datetimes and enums become plain scalars
        plain = json.loads(self.format_json(data))
        return yaml.safe_dump(plain, default_flow_style=False, sort_keys=False)

    def format_table(self, data: Any, headers: Optional[List[str]] = None) -> str:
        """Format data as a table."""
        if isinstance(data, dict):
            return self._format_dict_table(data)
        elif isinstance(data, list):
            return self._format_list_table(data, headers)
        else:
            return str(data)

    def _format_dict_table(self, data: Dict[str, Any]) -> str:
        """Format dictionary as a key-value table."""
        table_data = [[self._colorize(k, 'key'), self._format_value(v)]
                      for k, v in data.items()]
        return tabulate(table_data, tablefmt='plain')

    def _format_list_table(self, data: List[Any], headers: Optional[List[str]] = None) -> str:
        """Format list as a table."""
        if not data:
            return "No data available"

        if isinstance(data[0], dict):
            if headers is None:
                headers = list(data[0].keys())

            table_data = [[self._format_value(item.get(h, '')) for h in headers] for item in data]
            colored_headers = [self._colorize(h, 'header') for h in headers]
            return tabulate(table_data, headers=colored_headers, tablefmt='grid')

        return '\n'.join(str(item) for item in data)

    def _format_value(self, value: Any) -> str:
        """Format individual value for display."""
        if value is None:
            return self._colorize('null', 'null')
        elif isinstance(value, bool):
            return self._colorize('true' if value else 'false', 'bool')
        elif isinstance(value, (int, float)):
            return self._colorize(str(value), 'number')
        elif isinstance(value, datetime):
            return value.strftime('%Y-%m-%d %H:%M:%S')
        elif isinstance(value, dict):
            return f"<{len(value)} items>"
        elif isinstance(value, list):
            return f"[{len(value)} items]"
        else:
            val_str = str(value)
            if len(val_str) > MAX_VALUE_WIDTH:
                val_str = val_str[:MAX_VALUE_WIDTH - 3] + '...'
            return val_str

    def _colorize(self, text: str, color_type: str) -> str:
        """Add color to text if color output is enabled."""
        if not self.color_output:
            return text

        # ANSI color codes
        colors = {
            'header': '\033[1;34m',  # Bold blue
            'key': '\033[1;36m',     # Bold cyan
            'number': '\033[33m',    # Yellow
            'bool': '\033[35m',      # Magenta
            'null': '\033[90m',      # Gray
            'reset': '\033[0m'
        }

        color = colors.get(color_type, '')
        return f"{color}{text}{colors['reset']}" if color else text

    def _json_encoder(self, obj):
        """Custom JSON encoder for special types."""
        if isinstance(obj, datetime):
            return obj.isoformat()
        elif isinstance(obj, Path):
            return str(obj)
        elif hasattr(obj, 'model_dump'):
            return obj.model_dump(mode='json')
        elif hasattr(obj, 'value'):
            return obj.value
        else:
            return str(obj)


class StatusIndicator:
    """Status indicators for different states."""

    SYMBOLS = {
        'success': '✅',
        'error': '❌',
        'warning': '⚠️',
        'bullet': '•',
    }

    STATUS_COLORS = {
        'success': '\033[1;32m',
        'error': '\033[1;31m',
        'warning': '\033[1;33m',
        'reset': '\033[0m'
    }

    @classmethod
    def get_symbol(cls, status: str) -> str:
        return cls.SYMBOLS.get(status, cls.SYMBOLS['bullet'])

    @classmethod
    def format_status(cls, status: str, text: str, color: bool = True) -> str:
        """Format status with symbol and optional color."""
        symbol = cls.get_symbol(status)

        if color and sys.stdout.isatty():
            color_code = cls.STATUS_COLORS.get(status, '')
            return f"{symbol} {color_code}{text}{cls.STATUS_COLORS['reset']}"
        return f"{symbol} {text}"


__all__ = [
    'OutputFormatter',
    'StatusIndicator',
]
