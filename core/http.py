from flask import jsonify, redirect

def ok(payload=None, status=200):
    return jsonify(payload or {}), status

def error(code, status=400, message=None):
    body = {'error': code}
    if message:
        body['message'] = message
    return jsonify(body), status

def redirect_to(outcome, status=302):
    return redirect(outcome.url, code=status)
