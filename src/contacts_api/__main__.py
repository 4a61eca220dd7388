from contacts_api.main import run

run()
