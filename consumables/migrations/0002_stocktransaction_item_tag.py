from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("consumables", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="stocktransaction",
            name="item_tag",
            field=models.UUIDField(blank=True, db_index=True, null=True),
        ),
    ]
