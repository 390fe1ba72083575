"""Request body schemas, validated at the HTTP boundary."""
from flask import request
from pydantic import BaseModel, ValidationError

from marketplace.exceptions import InvalidArgumentError


def parse_body(model: type[BaseModel]) -> BaseModel:
    """Validate the JSON body of the current request against ``model``."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidArgumentError('Request body must be a JSON object')
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = [
            {'field': '.'.join(str(p) for p in err['loc']), 'message': err['msg']}
            for err in e.errors()
        ]
        raise InvalidArgumentError('Invalid request body', payload={'errors': errors})
