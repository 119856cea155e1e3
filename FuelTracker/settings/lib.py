"""Settings library for application preferences and authentication configuration.

Provides:
    - Schema validation and enforcement for settings.json structure.
    - Loading, saving, reverting, and managing application settings.
    - Per-user spreadsheet id bookkeeping.
    - Constants for preference keys and their defaults.
"""

import json
import logging
import pathlib
import shutil
from typing import Dict, Any, Optional, List, Tuple

from PySide6 import QtCore

from ..status import status

app_name: str = 'FuelTracker'

PREFERENCE_KEYS: List[str] = [
    'near_empty_threshold',
    'max_reported_errors',
    'spreadsheet_title',
    'entries_worksheet',
    'vehicles_worksheet',
]

SETTINGS_SCHEMA: Dict[str, Any] = {
    'spreadsheet': {
        'type': dict,
        'required': True,
        # user email -> spreadsheet id
        'value_type': str,
    },
    'preferences': {
        'type': dict,
        'required': True,
        'required_keys': PREFERENCE_KEYS,
        'item_schema': {
            'near_empty_threshold': {'type': (int, float), 'required': True},
            'max_reported_errors': {'type': int, 'required': True},
            'spreadsheet_title': {'type': str, 'required': True},
            'entries_worksheet': {'type': str, 'required': True},
            'vehicles_worksheet': {'type': str, 'required': True},
        }
    },
}


def _validate_spreadsheet(spreadsheet_dict: Dict[str, Any], specs: Dict[str, Any]) -> None:
    """Validate the 'spreadsheet' section of the settings.

    Args:
        spreadsheet_dict: Mapping of user emails to spreadsheet ids.
        specs: Schema dict containing 'value_type'.

    Raises:
        TypeError: If a key or value is not a string.
    """
    logging.debug('Validating "spreadsheet" section.')
    for k, v in spreadsheet_dict.items():
        if not isinstance(k, str):
            msg: str = f'Spreadsheet key "{k}" is not a string.'
            logging.error(msg)
            raise TypeError(msg)
        if not isinstance(v, specs['value_type']):
            msg = f'Spreadsheet id for "{k}" must be a string.'
            logging.error(msg)
            raise TypeError(msg)


def _validate_preferences(preferences_dict: Dict[str, Any], specs: Dict[str, Any]) -> None:
    """Validate the 'preferences' section of the settings.

    Args:
        preferences_dict: Mapping of preference keys to values.
        specs: Schema dict containing 'required_keys' and 'item_schema'.

    Raises:
        ValueError: If a required key is missing or a numeric preference is out of range.
        TypeError: If a value has the wrong type.
    """
    logging.debug('Validating "preferences" section.')
    missing = [k for k in specs['required_keys'] if k not in preferences_dict]
    if missing:
        msg: str = f'preferences is missing keys: {missing}.'
        logging.error(msg)
        raise ValueError(msg)

    for key, field_specs in specs['item_schema'].items():
        value = preferences_dict[key]
        # bool is an int subclass, reject it explicitly
        if isinstance(value, bool) or not isinstance(value, field_specs['type']):
            msg = f'Preference "{key}" must be {field_specs["type"]}, got {type(value)}.'
            logging.error(msg)
            raise TypeError(msg)

    if preferences_dict['near_empty_threshold'] < 0:
        msg = 'Preference "near_empty_threshold" must not be negative.'
        logging.error(msg)
        raise ValueError(msg)
    if preferences_dict['max_reported_errors'] < 0:
        msg = 'Preference "max_reported_errors" must not be negative.'
        logging.error(msg)
        raise ValueError(msg)


def _write_json(path: pathlib.Path, data: Dict[str, Any]) -> None:
    with path.open('w', encoding='utf-8') as f:
        json.dump(data, f, indent=4, ensure_ascii=False)


class ConfigPaths:
    """Locations of FuelTracker's configuration files.

    Everything lives under ``<AppData>/FuelTracker/config``: ``settings.json``,
    ``client_secret.json`` and ``auth/creds.json``. Missing settings and client secret
    files are seeded from the templates shipped in the package.
    """

    def __init__(self) -> None:
        QtCore.QCoreApplication.setApplicationName(app_name)

        app_data_dir = pathlib.Path(
            QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.AppDataLocation)
        )
        logging.debug(f'{app_name} data directory: {app_data_dir}')

        self.template_dir: pathlib.Path = pathlib.Path(__file__).parent.parent / 'config'
        self.client_secret_template: pathlib.Path = self.template_dir / 'client_secret.json.template'
        self.settings_template: pathlib.Path = self.template_dir / 'settings.json.template'

        self.config_dir: pathlib.Path = app_data_dir / 'config'
        self.auth_dir: pathlib.Path = self.config_dir / 'auth'
        self.client_secret_path: pathlib.Path = self.config_dir / 'client_secret.json'
        self.settings_path: pathlib.Path = self.config_dir / 'settings.json'
        self.creds_path: pathlib.Path = self.auth_dir / 'creds.json'

        self._verify_and_prepare()

    def _templates(self) -> List[Tuple[pathlib.Path, pathlib.Path]]:
        return [
            (self.settings_template, self.settings_path),
            (self.client_secret_template, self.client_secret_path),
        ]

    def _verify_and_prepare(self) -> None:
        """Create the config folders and seed missing files from the templates.

        Raises:
            FileNotFoundError: If a packaged template is missing.
        """
        for template, _ in self._templates():
            if not template.is_file():
                msg: str = f'Missing template: {template}'
                logging.error(msg)
                raise FileNotFoundError(msg)

        self.auth_dir.mkdir(parents=True, exist_ok=True)

        for template, target in self._templates():
            if not target.exists():
                logging.debug(f'Seeding {target.name} from {template.name}')
                shutil.copy(template, target)

    def revert_client_secret_to_template(self) -> None:
        """Overwrite client_secret.json with the empty packaged template."""
        logging.debug(f'Reverting {self.client_secret_path} to the template')
        shutil.copy(self.client_secret_template, self.client_secret_path)


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to get/set/revert/save settings.json sections and client_secret.json.
    """
    required_client_secret_keys: List[str] = ['client_id', 'project_id', 'client_secret', 'auth_uri', 'token_uri']

    def __init__(self, settings_path: Optional[str] = None, client_secret_path: Optional[str] = None) -> None:
        """Initialize SettingsAPI and load settings and client_secret data.

        Args:
            settings_path: Optional path to a custom settings.json file.
            client_secret_path: Optional path to a custom client_secret.json file.
        """
        super().__init__()

        self.settings_path: pathlib.Path = pathlib.Path(settings_path) if settings_path else self.settings_path
        self.client_secret_path: pathlib.Path = (
            pathlib.Path(client_secret_path)
            if client_secret_path
            else self.client_secret_path
        )

        self.settings_data: Dict[str, Any] = {k: {} for k in SETTINGS_SCHEMA}
        self.client_secret_data: Dict[str, Any] = {}

        self.init_data()

    def __getitem__(self, key: str) -> Any:
        """Retrieve a preference value using dictionary-style access.

        Raises:
            KeyError: If key is not in PREFERENCE_KEYS.
        """
        if key not in PREFERENCE_KEYS:
            raise KeyError(f'Invalid preference key: {key}, must be one of {PREFERENCE_KEYS}')
        return self.settings_data['preferences'].get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        """Assign a preference value and persist it.

        Raises:
            KeyError: If key is not in PREFERENCE_KEYS.
            TypeError, ValueError: If the new value fails validation.
        """
        if key not in PREFERENCE_KEYS:
            raise KeyError(f'Invalid preference key: {key}, must be one of {PREFERENCE_KEYS}')

        preferences = self.get_section('preferences')
        preferences[key] = value
        self.set_section('preferences', preferences)

    def init_data(self) -> None:
        """Reload settings and client_secret data."""
        self.load_settings()
        self.load_client_secret()

        from ..actions import signals
        signals.configSectionChanged.emit('client_secret')
        for section in SETTINGS_SCHEMA:
            signals.configSectionChanged.emit(section)

    def load_settings(self) -> Dict[str, Any]:
        """Load settings.json from disk and validate against schema.

        Returns:
            The loaded settings data dictionary.

        Raises:
            status.SettingsNotFoundException: If settings.json file is missing.
            status.SettingsInvalidException: If JSON parsing or validation fails.
        """
        logging.debug(f'Loading settings from "{self.settings_path}"')
        if not self.settings_path.exists():
            raise status.SettingsNotFoundException

        try:
            with self.settings_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_settings_data(data)
        except (ValueError, TypeError, status.SettingsInvalidException) as ex:
            raise status.SettingsInvalidException(str(ex)) from ex

        self.settings_data = data
        return self.settings_data

    def load_client_secret(self) -> Dict[str, Any]:
        """Read and validate client_secret.json.

        Raises:
            status.ClientSecretNotFoundException: If the file is missing.
            status.ClientSecretInvalidException: If it is not JSON or lacks OAuth fields.
        """
        if not self.client_secret_path.exists():
            raise status.ClientSecretNotFoundException

        try:
            data: Dict[str, Any] = json.loads(self.client_secret_path.read_text(encoding='utf-8'))
        except ValueError as ex:
            raise status.ClientSecretInvalidException(f'{self.client_secret_path.name} is not valid JSON.') from ex

        self.validate_client_secret(data)
        self.client_secret_data = data
        logging.debug(f'Loaded client secret from {self.client_secret_path}')
        return self.client_secret_data

    def validate_client_secret(self, data=None) -> str:
        """Check an OAuth client configuration.

        Google issues desktop clients under ``installed`` and web clients under ``web``.

        Args:
            data (dict, optional): Defaults to the loaded client secret.

        Returns:
            str: The client type found, ``installed`` or ``web``.

        Raises:
            status.ClientSecretInvalidException: If neither client type is present or keys are missing.
        """
        data = self.client_secret_data if data is None else data

        for client_type in ('installed', 'web'):
            if client_type not in data:
                continue
            missing = [k for k in self.required_client_secret_keys if k not in data[client_type]]
            if missing:
                raise status.ClientSecretInvalidException(f'"{client_type}" client is missing {missing}.')
            return client_type

        raise status.ClientSecretInvalidException('Expected an "installed" or "web" client.')

    def validate_settings_data(self, data: Dict[str, Any] = None) -> None:
        """Validate settings data against the defined SETTINGS_SCHEMA.

        Args:
            data (dict, optional): Settings data to validate. Defaults to self.settings_data.

        Raises:
            status.SettingsInvalidException: If a required section is missing or has the wrong type.
            TypeError, ValueError: If a section's contents fail validation.
        """
        if data is None:
            data = self.settings_data

        logging.debug('Validating settings data against schema.')
        for field, specs in SETTINGS_SCHEMA.items():
            if specs.get('required') and field not in data:
                raise status.SettingsInvalidException(f'Missing required field: {field}')

            if not isinstance(data[field], specs['type']):
                raise status.SettingsInvalidException(
                    f'Field "{field}" must be {specs["type"]}, got {type(data[field])}.'
                )

            if field == 'spreadsheet':
                _validate_spreadsheet(data[field], specs)
            elif field == 'preferences':
                _validate_preferences(data[field], specs)

        logging.debug('Settings data is valid.')

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Retrieve a copy of configuration data for a settings or client_secret section.

        Raises:
            KeyError: If section_name is not in settings_data.
        """
        if section_name == 'client_secret':
            return self.client_secret_data.copy()

        return self.settings_data[section_name].copy()

    def _check_section(self, section_name: str, action: str) -> None:
        if section_name not in self.settings_data:
            msg = f'Cannot {action} "{section_name}": not a settings section.'
            logging.error(msg)
            raise ValueError(msg)

    def set_section(self, section_name: str, new_data: Dict[str, Any]) -> None:
        """Validate, store and write one section.

        The previous contents are restored when validation fails.

        Raises:
            ValueError: If the section is unknown or ``new_data`` has bad values.
            TypeError: If ``new_data`` holds values of the wrong type.
        """
        from ..actions import signals

        if section_name == 'client_secret':
            self.validate_client_secret(new_data)
            self.client_secret_data = new_data
            self.save_section(section_name)
            signals.configSectionChanged.emit(section_name)
            return

        self._check_section(section_name, 'set')

        previous = self.settings_data[section_name]
        self.settings_data[section_name] = new_data
        try:
            self.validate_settings_data()
        except (ValueError, TypeError) as ex:
            logging.error(f'Rejected "{section_name}" settings: {ex}')
            self.settings_data[section_name] = previous
            raise

        self.save_section(section_name)
        signals.configSectionChanged.emit(section_name)

    def revert_section(self, section_name: str) -> None:
        """Restore a section from the bundled template and write it."""
        from ..actions import signals

        if section_name == 'client_secret':
            self.revert_client_secret_to_template()
            self.load_client_secret()
            signals.configSectionChanged.emit(section_name)
            return

        self._check_section(section_name, 'revert')

        defaults: Dict[str, Any] = json.loads(self.settings_template.read_text(encoding='utf-8'))
        if section_name not in defaults:
            raise ValueError(f'The settings template has no "{section_name}" section.')

        self.settings_data[section_name] = defaults[section_name]
        self.save_section(section_name)
        signals.configSectionChanged.emit(section_name)

    def save_section(self, section_name: str) -> None:
        """Write one section to disk, leaving the rest of the file untouched."""
        if section_name == 'client_secret':
            self.validate_client_secret(self.client_secret_data)
            _write_json(self.client_secret_path, self.client_secret_data)
            logging.debug(f'Wrote client secret to {self.client_secret_path}')
            return

        self._check_section(section_name, 'save')

        on_disk: Dict[str, Any] = json.loads(self.settings_path.read_text(encoding='utf-8'))
        on_disk[section_name] = self.settings_data[section_name]
        _write_json(self.settings_path, on_disk)
        logging.debug(f'Wrote "{section_name}" to {self.settings_path}')

    def get_spreadsheet_id(self, email: str) -> Optional[str]:
        """Return the remembered spreadsheet id for a user, if any."""
        return self.settings_data['spreadsheet'].get(email) or None

    def set_spreadsheet_id(self, email: str, spreadsheet_id: str) -> None:
        """Remember the spreadsheet id for a user."""
        if self.get_spreadsheet_id(email) == spreadsheet_id:
            return
        data = self.get_section('spreadsheet')
        data[email] = spreadsheet_id
        self.set_section('spreadsheet', data)
        logging.debug(f'Remembered spreadsheet "{spreadsheet_id}" for {email}.')

    def forget_spreadsheet_id(self, email: str) -> None:
        """Drop the remembered spreadsheet id for a user."""
        data = self.get_section('spreadsheet')
        if data.pop(email, None) is None:
            return
        self.set_section('spreadsheet', data)
        logging.debug(f'Forgot spreadsheet id for {email}.')


settings: SettingsAPI = SettingsAPI()
