from flask import Blueprint, jsonify, request, current_app

from utils.currency import BASE_CURRENCY, EXCHANGE_RATES, available_currencies, get_currency_name, get_currency_symbol
from utils.preferences import CurrencyPreferenceService

currency_bp = Blueprint('currency', __name__, url_prefix='/currency')


@currency_bp.route('/currencies', methods=['GET'])
def list_currencies():
    return jsonify({
        'base_currency': BASE_CURRENCY,
        'currencies': [
            {
                'code': code,
                'symbol': get_currency_symbol(code),
                'name': get_currency_name(code),
                'rate': str(EXCHANGE_RATES[code]),
            }
            for code in available_currencies()
        ],
    })


@currency_bp.route('/preference', methods=['GET'])
def get_preference():
    return jsonify(CurrencyPreferenceService().current().to_dict())


@currency_bp.route('/preference', methods=['PUT'])
def set_preference():
    """Saves the customer's display currency in their session. Unsupported codes answer 400."""
    data = request.get_json(silent=True) or {}
    context = CurrencyPreferenceService().select(data.get('currency'))
    current_app.logger.info(f"Display currency set to {context.selected_currency}.")
    return jsonify(context.to_dict())
