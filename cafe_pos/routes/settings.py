"""
Company Settings Routes
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required
from sqlalchemy.exc import SQLAlchemyError
from cafe_pos.models import db, CompanySettings
from cafe_pos.utils.permissions import page_required
from cafe_pos.utils.validation import require

bp = Blueprint('settings', __name__)

SETTINGS_FIELDS = ('address', 'phone', 'email', 'tax_id', 'currency', 'locale')


def settings_json(settings):
    if settings is None:
        return {
            'company_name': current_app.config.get('BUSINESS_NAME'),
            'address': current_app.config.get('BUSINESS_ADDRESS'),
            'phone': current_app.config.get('BUSINESS_PHONE'),
            'email': None,
            'tax_id': None,
            'currency': current_app.config.get('CURRENCY'),
            'locale': None,
        }
    return {
        'company_name': settings.company_name,
        'address': settings.address,
        'phone': settings.phone,
        'email': settings.email,
        'tax_id': settings.tax_id,
        'currency': settings.currency,
        'locale': settings.locale,
    }


@bp.route('/company')
@login_required
def get_company():
    return jsonify(settings_json(CompanySettings.current()))


@bp.route('/company', methods=['PUT'])
@login_required
@page_required('settings')
def update_company():
    """Create or update the single company settings row"""
    data = request.get_json(silent=True) or {}
    settings = CompanySettings.current()
    if settings is None:
        settings = CompanySettings(company_name=require(data, 'company_name'))
        db.session.add(settings)
    elif 'company_name' in data:
        settings.company_name = require(data, 'company_name')

    for field in SETTINGS_FIELDS:
        if field in data:
            setattr(settings, field, data.get(field))

    try:
        db.session.commit()
        return jsonify({'success': True, 'settings': settings_json(settings)})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving company settings: {e}")
        return jsonify({'success': False, 'error': 'Error saving settings'}), 500
