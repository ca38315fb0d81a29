from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("bidding", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="earnestmoneydeposit",
            name="refunded_at",
            field=models.DateTimeField(blank=True, null=True),
        ),
    ]
