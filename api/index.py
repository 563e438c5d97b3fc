from mangum import Mangum

from seva_ledger.api import app

app.root_path = "/api"

handler = Mangum(app)
