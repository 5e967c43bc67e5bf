from http import HTTPStatus

# Reason phrases indexed by status code
HTTP_STATUS: dict[int, str] = {_.value: _.phrase for _ in HTTPStatus}


def reason(status: int) -> str:
	return HTTP_STATUS.get(status, "Unknown Status")


# EOF
