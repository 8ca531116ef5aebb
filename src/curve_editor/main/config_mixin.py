"""Configuration management for EditorSession"""

import os
import json

from curve_editor.constants import DEFAULT_AI_TIMEOUT
from curve_editor.utils.logger import loggerRaise

MAX_RECENT_FILES = 10


def default_config_dir():
	return os.path.join(os.path.expanduser('~'), '.curve_editor')


class ConfigMixin:
	"""Configuration file operations, recent files and preferences"""

	def _init_config(self, config_dir=None):
		self.config_dir = config_dir or default_config_dir()
		self.config_file = os.path.join(self.config_dir, 'config.json')
		self.max_recent_files = MAX_RECENT_FILES
		self.recent_files = []
		self.ai_timeout = DEFAULT_AI_TIMEOUT
		self.export_directory = None

	def _load_config(self):
		"""Load recent files and settings from config file"""
		try:
			if os.path.exists(self.config_file):
				with open(self.config_file, 'r', encoding='utf-8') as f:
					config = json.load(f)
					self.recent_files = config.get('recent_files', [])
					# Filter out files that no longer exist
					self.recent_files = [f for f in self.recent_files if os.path.exists(f)]
					self.document.dark_mode = bool(config.get('dark_mode', False))
					self.ai_timeout = float(config.get('ai_timeout', DEFAULT_AI_TIMEOUT))
					self.export_directory = config.get('export_directory')
		except Exception as e:
			loggerRaise(e, "Error loading config")

	def _save_config(self):
		"""Save recent files and settings to config file"""
		try:
			# Create config directory if it doesn't exist
			os.makedirs(self.config_dir, exist_ok=True)

			config = {
				'recent_files': self.recent_files[:self.max_recent_files],
				'dark_mode': self.document.dark_mode,
				'ai_timeout': self.ai_timeout,
				'export_directory': self.export_directory,
			}

			with open(self.config_file, 'w', encoding='utf-8') as f:
				json.dump(config, f, indent=2)
		except Exception as e:
			loggerRaise(e, "Error saving config")

	def _add_to_recent_files(self, filepath):
		"""Add a file to the recent files list"""
		filepath = os.path.abspath(filepath)
		# Remove if already in list
		if filepath in self.recent_files:
			self.recent_files.remove(filepath)

		# Add to front of list
		self.recent_files.insert(0, filepath)

		# Trim to max size
		self.recent_files = self.recent_files[:self.max_recent_files]

		self._save_config()

	def clear_recent_files(self):
		"""Clear the recent files list"""
		self.recent_files = []
		self._save_config()

	def set_dark_mode(self, enabled):
		"""Dark mode only changes the default colour of new text layers"""
		self.document.dark_mode = bool(enabled)
		self._save_config()
